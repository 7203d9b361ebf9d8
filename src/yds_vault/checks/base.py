"""Result type shared by pre-flight and liveness checks."""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import VaultClientError


@dataclass
class CheckResult:
    """Result from a check.

    A failed pre-flight check carries the error that acting anyway would
    raise, so callers can either show ``message`` next to a disabled action
    or call ``raise_for_failure()``.
    """

    passed: bool
    message: str
    retry_recommended: bool = False
    error: VaultClientError | None = None

    def raise_for_failure(self) -> None:
        if not self.passed:
            raise self.error or VaultClientError(self.message)


PASSED = CheckResult(passed=True, message="ok")
