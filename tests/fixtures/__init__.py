"""Test Fixtures Package.

Provides centralized fixtures for converge tests:
- database.py: in-memory SQLite client and DatabaseState fixtures
- fakes.py: fake collaborators (secret store, mailer, PGP codec, GraphQL)
  and recording workflows for the runners

Fixtures are imported directly by conftest.py - no re-exports here.
"""
