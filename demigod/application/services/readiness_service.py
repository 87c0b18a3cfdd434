from __future__ import annotations

import json
import time
from typing import Callable, Protocol

from demigod.domain.enums import HealthStatus
from demigod.domain.errors import DependencyTimeout
from demigod.domain.models.dependency import Dependency
from demigod.domain.models.retry import RetryBudget
from demigod.domain.ports.command_executor import CommandExecutorPort
from demigod.logger import get_logger


class HealthQuery(Protocol):
    def query_health(self, dependency_id: str) -> HealthStatus: ...


def parse_inspect_health(raw: str) -> HealthStatus:
    """
    Read `[0].State.Health.Status` out of `docker inspect` JSON.

    Anything that does not carry a recognised status token (empty output,
    malformed JSON, a container without a healthcheck) maps to UNKNOWN.
    """
    text = str(raw or "").strip()
    if not text:
        return HealthStatus.UNKNOWN
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        # Plain token output, e.g. from `--format '{{.State.Health.Status}}'`.
        return HealthStatus.parse(text.splitlines()[0])
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return HealthStatus.UNKNOWN
    state = payload.get("State")
    health = state.get("Health") if isinstance(state, dict) else None
    status = health.get("Status") if isinstance(health, dict) else None
    return HealthStatus.parse(status if isinstance(status, str) else None)


class ContainerHealthQuery:
    def __init__(self, executor: CommandExecutorPort) -> None:
        self.executor = executor
        self._logger = get_logger()

    def query_health(self, dependency_id: str) -> HealthStatus:
        try:
            result = self.executor.run("docker", ["inspect", dependency_id])
        except OSError as exc:
            self._logger.warning(f"docker inspect {dependency_id} could not run: {exc}")
            return HealthStatus.UNKNOWN
        if not result.ok:
            return HealthStatus.UNKNOWN
        return parse_inspect_health(result.stdout)


class ReadinessPoller:
    def __init__(
        self,
        health: HealthQuery,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.health = health
        self._sleep = sleep
        self._logger = get_logger()

    def wait_until_ready(
        self,
        dependency_id: str,
        max_retries: int = 10,
        interval_seconds: float = 10.0,
    ) -> Dependency:
        budget = RetryBudget(max_retries=max_retries, interval_seconds=interval_seconds)
        log = self._logger.bind(step="wait")
        status = self.health.query_health(dependency_id)
        while status is not HealthStatus.HEALTHY:
            if budget.exhausted:
                log.error(f"{dependency_id} still {status} after {budget.attempts} retries")
                raise DependencyTimeout(dependency_id, budget.attempts)
            log.info(
                f"{dependency_id} is {status}; retry {budget.attempts + 1}/{budget.max_retries} "
                f"in {budget.interval_seconds:g}s"
            )
            self._sleep(budget.interval_seconds)
            budget.consume()
            status = self.health.query_health(dependency_id)
        log.info(f"{dependency_id} is healthy")
        return Dependency(name=dependency_id, status=status)
