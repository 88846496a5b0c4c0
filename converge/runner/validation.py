"""ValidationRunner - runs a detection-only workflow once and exits.

Exit codes:
    0 - no validation errors, or the feature toggle is disabled
    1 - validation errors found, or setup/validate failed (timeout included)
"""

import asyncio
import sys
import time
from typing import Any, Callable, List, Optional

from converge.errors import PhaseError
from converge.logging import get_component_logger
from converge.protocols import (
    FeatureClientProtocol,
    LoggerProtocol,
    Validation,
    ValidationError,
    ValidationResult,
)
from converge.runner.integration import feature_enabled
from converge.settings import RunnerSettings


class ValidationRunner:
    """Drives a Validation through setup and validate."""

    def __init__(
        self,
        validation: Validation,
        name: str,
        settings: Optional[RunnerSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        exiter: Callable[[int], Any] = sys.exit,
        feature_client: Optional[FeatureClientProtocol] = None,
    ):
        self.validation = validation
        self.name = name
        self.settings = settings or RunnerSettings()
        self._logger = get_component_logger("validation_runner", logger).bind(validation=name)
        self._exiter = exiter
        self._feature_client = feature_client

    async def run(self) -> ValidationResult:
        """Validate once, log the findings and hand the status to the exiter."""
        result = await self.run_validation()
        self._exiter(result.status)
        return result

    async def run_validation(self) -> ValidationResult:
        started = time.monotonic()

        if self.settings.use_feature_toggle:
            try:
                enabled = await feature_enabled(self.name, self._feature_client)
            except Exception as e:
                self._logger.error(
                    "phase_failed",
                    phase="feature_toggle",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return ValidationResult(status=1, duration_seconds=time.monotonic() - started, error=e)
            if not enabled:
                self._logger.info("validation_disabled", feature=self.name)
                return ValidationResult(status=0, duration_seconds=time.monotonic() - started, skipped=True)

        result = ValidationResult(status=1, duration_seconds=0.0)
        running = "setup"
        try:
            async with asyncio.timeout(self.settings.timeout or None):
                try:
                    await self.validation.setup()
                except Exception as e:
                    raise PhaseError("setup", e) from e
                result.setup_done = True

                running = "validate"
                try:
                    errors: List[ValidationError] = await self.validation.validate()
                except Exception as e:
                    raise PhaseError("validate", e) from e
        except PhaseError as e:
            result.error = e
            self._logger.error(
                "phase_failed",
                phase=e.phase,
                error=str(e.cause),
                error_type=type(e.cause).__name__,
            )
        except TimeoutError as e:
            result.error = e
            self._logger.error(
                "phase_failed",
                phase=running,
                error=f"validation timed out after {self.settings.timeout}s",
                error_type="TimeoutError",
            )
        else:
            for finding in errors:
                self._logger.info(
                    "validation_error",
                    path=finding.path,
                    validation=finding.validation,
                    error=finding.error,
                )
            result.errors = list(errors)
            result.status = 1 if errors else 0

        result.duration_seconds = time.monotonic() - started
        self._logger.info(
            "validation_completed",
            status=result.status,
            errors=len(result.errors),
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result


__all__ = ["ValidationRunner"]
