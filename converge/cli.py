"""Command line entry point.

Examples:
  converge account-notifier
  converge --log-level DEBUG --config ./local.env example
  DRY_RUN=false RUN_ONCE=true converge account-notifier
  KEY_VALIDATOR_USERFILE=data/users/jdoe.yml converge key-validator
"""

import argparse
import asyncio
from typing import Callable, Dict, List, Optional

from dotenv import load_dotenv

from converge import __version__
from converge.integrations.account_notifier import INTEGRATION_NAME as ACCOUNT_NOTIFIER
from converge.integrations.account_notifier import AccountNotifier
from converge.integrations.example import INTEGRATION_NAME as EXAMPLE
from converge.integrations.example import Example
from converge.integrations.key_validator import INTEGRATION_NAME as KEY_VALIDATOR
from converge.integrations.key_validator import KeyValidator
from converge.integrations.user_validator import INTEGRATION_NAME as USER_VALIDATOR
from converge.integrations.user_validator import UserValidator
from converge.logging import configure_logging, create_logger
from converge.protocols import Integration, LoggerProtocol, Validation
from converge.runner import IntegrationRunner, ValidationRunner
from converge.settings import get_settings

INTEGRATIONS: Dict[str, Callable[[LoggerProtocol], Integration]] = {
    ACCOUNT_NOTIFIER: lambda logger: AccountNotifier(logger=logger),
    EXAMPLE: lambda logger: Example(logger=logger),
}

VALIDATIONS: Dict[str, Callable[[LoggerProtocol], Validation]] = {
    USER_VALIDATOR: lambda logger: UserValidator(logger=logger),
    KEY_VALIDATOR: lambda logger: KeyValidator(logger=logger),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="converge",
        description="Run a convergence integration or validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("\n\n", 1)[1],
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="dotenv file with settings; the environment takes precedence",
    )
    parser.add_argument(
        "--console-logs",
        action="store_true",
        help="Human readable logs instead of JSON",
    )

    subcommands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    subcommands.add_parser(ACCOUNT_NOTIFIER, help="Re-encrypt initial AWS passwords and notify users")
    subcommands.add_parser(EXAMPLE, help="Mirror user public keys into a directory")
    subcommands.add_parser(USER_VALIDATOR, help="Validate user files")
    subcommands.add_parser(KEY_VALIDATOR, help="Validate the PGP key of one user file")
    return parser


async def run_command(command: str, logger: LoggerProtocol) -> None:
    settings = get_settings()
    if command in INTEGRATIONS:
        runner = IntegrationRunner(
            INTEGRATIONS[command](logger),
            name=command,
            settings=settings,
            logger=logger,
        )
        await runner.run()
    else:
        validation_runner = ValidationRunner(
            VALIDATIONS[command](logger),
            name=command,
            settings=settings,
            logger=logger,
        )
        await validation_runner.run()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.config:
        load_dotenv(args.config, override=False)

    level = args.log_level or get_settings().log_level
    configure_logging(level, json_output=not args.console_logs)
    logger = create_logger("converge", integration=args.command)

    asyncio.run(run_command(args.command, logger))


if __name__ == "__main__":
    main()
