"""Integrations and validations shipped with converge."""

from converge.integrations.account_notifier import AccountNotifier
from converge.integrations.example import Example
from converge.integrations.key_validator import KeyValidator
from converge.integrations.user_validator import UserValidator

__all__ = [
    "AccountNotifier",
    "Example",
    "KeyValidator",
    "UserValidator",
]
