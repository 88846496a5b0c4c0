"""IntegrationRunner - the scheduling loop for convergence workflows.

One cycle:
    build inventory -> [feature toggle] -> setup -> current_state
    -> desired_state -> log_diff -> reconcile (unless dry-run)

Cycles never overlap. dry_run only decides whether reconcile runs;
run_once only decides whether the process exits after the cycle (with the
cycle's status) or sleeps and loops.
"""

import asyncio
import sys
import time
from typing import Any, Awaitable, Callable, Optional

from prometheus_client import CollectorRegistry

from converge.clients.unleash import UnleashClient
from converge.errors import PhaseError
from converge.logging import get_component_logger
from converge.protocols import (
    CyclePhase,
    CycleResult,
    FeatureClientProtocol,
    Integration,
    LoggerProtocol,
    ResourceInventory,
)
from converge.runner.metrics import RunnerMetrics, start_metrics_server
from converge.settings import RunnerSettings

Exiter = Callable[[int], Any]
Sleeper = Callable[[float], Awaitable[Any]]


async def feature_enabled(
    name: str,
    feature_client: Optional[FeatureClientProtocol],
) -> bool:
    """Look up the feature toggle named after the integration."""
    if feature_client is None:
        async with UnleashClient() as client:
            return await client.is_enabled(name)
    return await feature_client.is_enabled(name)


class IntegrationRunner:
    """Drives an Integration through repeated cycles.

    Example:
        runner = IntegrationRunner(AccountNotifier(...), name="account-notifier")
        await runner.run()
    """

    def __init__(
        self,
        integration: Integration,
        name: str,
        settings: Optional[RunnerSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        exiter: Exiter = sys.exit,
        registry: Optional[CollectorRegistry] = None,
        feature_client: Optional[FeatureClientProtocol] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.integration = integration
        self.name = name
        self.settings = settings or RunnerSettings()
        self._logger = get_component_logger("integration_runner", logger).bind(integration=name)
        self._exiter = exiter
        self._feature_client = feature_client
        self._sleep = sleep
        self.metrics = RunnerMetrics(name, registry)
        self.cycles = 0

    async def run(self) -> CycleResult:
        """Serve metrics and loop cycles until run_once ends the process."""
        start_metrics_server(self.settings.prometheus_port, self.metrics.registry)
        self._logger.info(
            "runner_started",
            dry_run=self.settings.dry_run,
            run_once=self.settings.run_once,
            timeout=self.settings.timeout,
            sleep_duration_secs=self.settings.sleep_duration_secs,
            prometheus_port=self.settings.prometheus_port,
        )
        while True:
            result = await self.run_cycle()
            if self.settings.run_once:
                self._exiter(result.status)
                return result
            self._logger.debug("runner_sleeping", seconds=self.settings.sleep_duration_secs)
            await self._sleep(self.settings.sleep_duration_secs)

    async def run_cycle(self) -> CycleResult:
        """Run one cycle and record its metrics. Never raises on phase errors."""
        self.cycles += 1
        log = self._logger.bind(cycle=self.cycles)
        tracker = _PhaseTracker()
        started = time.monotonic()
        log.info("cycle_started")

        error: Optional[BaseException] = None
        skipped = False
        try:
            async with asyncio.timeout(self.settings.timeout or None):
                skipped = await self._execute(tracker, log)
        except PhaseError as e:
            error = e
            log.error(
                "phase_failed",
                phase=e.phase,
                error=str(e.cause),
                error_type=type(e.cause).__name__,
            )
        except TimeoutError as e:
            error = e
            log.error(
                "phase_failed",
                phase=tracker.running,
                error=f"cycle timed out after {self.settings.timeout}s",
                error_type="TimeoutError",
            )

        duration = time.monotonic() - started
        status = 1 if error is not None else 0
        self.metrics.record_run(status, duration)

        log.info(
            "cycle_completed",
            status=status,
            phase=tracker.reached.value,
            skipped=skipped,
            duration_seconds=round(duration, 3),
        )
        return CycleResult(
            status=status,
            phase=tracker.reached,
            duration_seconds=duration,
            error=error,
            skipped=skipped,
        )

    async def _execute(self, tracker: "_PhaseTracker", log: LoggerProtocol) -> bool:
        """Run the phases in order. Returns True when the cycle was skipped."""
        inventory: ResourceInventory = ResourceInventory()

        if self.settings.use_feature_toggle:
            tracker.running = "feature_toggle"
            try:
                enabled = await feature_enabled(self.name, self._feature_client)
            except Exception as e:
                raise PhaseError("feature_toggle", e) from e
            if not enabled:
                log.info("integration_disabled", feature=self.name)
                return True

        await tracker.step("setup", CyclePhase.SETUP_DONE, self.integration.setup)
        await tracker.step(
            "current_state", CyclePhase.CURRENT_CAPTURED, self.integration.current_state, inventory
        )
        await tracker.step(
            "desired_state", CyclePhase.DESIRED_CAPTURED, self.integration.desired_state, inventory
        )

        tracker.running = "log_diff"
        try:
            self.integration.log_diff(inventory)
        except Exception as e:
            raise PhaseError("log_diff", e) from e

        if self.settings.dry_run:
            log.info("reconcile_skipped", reason="dry_run", targets=len(inventory))
            return False

        await tracker.step("reconcile", CyclePhase.RECONCILED, self.integration.reconcile, inventory)
        return False


class _PhaseTracker:
    """Tracks the phase in flight and the last phase completed."""

    def __init__(self) -> None:
        self.running = "created"
        self.reached = CyclePhase.CREATED

    async def step(
        self,
        name: str,
        reached: CyclePhase,
        phase: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        self.running = name
        try:
            await phase(*args)
        except Exception as e:
            raise PhaseError(name, e) from e
        self.reached = reached


__all__ = ["IntegrationRunner", "feature_enabled"]
