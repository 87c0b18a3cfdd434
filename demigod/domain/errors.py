from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class DomainError(Exception):
    code: str
    message: str
    details: Any = None
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


class ConfigurationError(DomainError):
    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(
            code="configuration_error",
            message=message,
            details=details,
            exit_code=2,
        )


class DependencyTimeout(DomainError):
    def __init__(self, dependency: str, attempts: int) -> None:
        super().__init__(
            code="dependency_timeout",
            message=f"Service {dependency} was not available after {attempts} retries",
            details={"dependency": dependency, "attempts": attempts},
            exit_code=3,
        )
        self.dependency = dependency
        self.attempts = attempts


class CacheError(DomainError):
    def __init__(self, kind: str, path: str, message: str) -> None:
        super().__init__(
            code="cache_error",
            message=f"{kind} cache check of {path} failed: {message}",
            details={"kind": kind, "path": path},
            exit_code=6,
        )
        self.kind = kind


class FetchError(DomainError):
    def __init__(
        self,
        kind: str,
        step: str,
        message: str,
        *,
        exit_status: int | None = None,
    ) -> None:
        super().__init__(
            code="fetch_error",
            message=f"{kind} {step} failed: {message}",
            details={"kind": kind, "step": step, "exit_status": exit_status},
            exit_code=4,
        )
        self.kind = kind
        self.step = step


class ApplyError(DomainError):
    def __init__(
        self,
        kind: str,
        step: str,
        message: str,
        *,
        exit_status: int | None = None,
    ) -> None:
        super().__init__(
            code="apply_error",
            message=f"{kind} {step} failed: {message}",
            details={"kind": kind, "step": step, "exit_status": exit_status},
            exit_code=5,
        )
        self.kind = kind
        self.step = step


class CommandError(DomainError):
    def __init__(self, command: str, exit_status: int, *, output: str = "") -> None:
        super().__init__(
            code="command_failed",
            message=f"`{command}` exited with status {exit_status}",
            details={"command": command, "exit_status": exit_status, "output": output},
            exit_code=1,
        )
        self.command = command
        self.exit_status = exit_status
