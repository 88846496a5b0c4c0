"""converge - a convergence engine for periodically-run integrations.

An integration answers three questions every cycle: what exists now
(current_state), what should exist (desired_state), and how to get from
one to the other (reconcile). converge supplies the scheduling loop,
the per-cycle diff container, durable state, metrics and failure handling.

Usage:
    from converge.runner import IntegrationRunner
    from converge.integrations import AccountNotifier

    runner = IntegrationRunner(AccountNotifier(), name="account-notifier")
    asyncio.run(runner.run())
"""

__version__ = "0.1.0"
