# ABOUTME: Error taxonomy for the helmgen pipeline
# ABOUTME: Fatal exceptions plus the non-fatal AdvisoryWarning record

"""
Errors and warnings raised while building a deployment plan.

Fatal errors derive from HelmgenError and abort the whole run before
anything is written. AdvisoryWarning is NOT an exception: it is a record
collected in a WarningLedger and shown once, in the final report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class HelmgenError(Exception):
    """Base class for every fatal helmgen error."""

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigurationError(HelmgenError):
    """An application folder or answer cannot be mapped to usable configuration."""

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        details: str | None = None,
    ) -> None:
        self.path = str(path) if path is not None else None
        if self.path:
            message = f"{message}: {self.path}"
        super().__init__(message, details)


class PathResolutionError(HelmgenError):
    """Application folders were selected but no root directory is configured."""


class ValidationError(HelmgenError):
    """The assembled plan would break a cross-application invariant."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(
            "Deployment plan failed validation",
            "; ".join(violations),
        )


class CollectionAborted(HelmgenError):
    """The user cancelled a question; nothing may be persisted."""


@dataclass(frozen=True)
class AdvisoryWarning:
    """Non-fatal condition surfaced in the final report."""

    source: str
    message: str
    hint: str | None = None

    def format_message(self) -> str:
        if self.hint:
            return f"{self.message}\n  {self.hint}"
        return self.message


@dataclass
class WarningLedger:
    """Accumulates advisory warnings across stages, in the order they occur."""

    _warnings: list[AdvisoryWarning] = field(default_factory=list)

    def record(self, warning: AdvisoryWarning | None) -> None:
        if warning is not None:
            self._warnings.append(warning)

    def extend(self, warnings: list[AdvisoryWarning]) -> None:
        for warning in warnings:
            self.record(warning)

    def from_source(self, source: str) -> list[AdvisoryWarning]:
        return [w for w in self._warnings if w.source == source]

    def __iter__(self) -> Iterator[AdvisoryWarning]:
        return iter(list(self._warnings))

    def __len__(self) -> int:
        return len(self._warnings)

    def __bool__(self) -> bool:
        return bool(self._warnings)
