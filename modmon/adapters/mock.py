"""
Mock handler — test double for remediation handlers.

Succeeds by default and records every call. Can be told to fail, to
raise, or to return a fixed result.
"""

from __future__ import annotations

from modmon.adapters.base import HandlerContext, HandlerResult, RemediationHandler


class MockHandler(RemediationHandler):
    """Universal mock handler for testing."""

    def __init__(self, handler_name: str = "mock", default_detail: str = "[mock] executed"):
        self._name = handler_name
        self._default_detail = default_detail
        self._result: HandlerResult | None = None
        self._exception: Exception | None = None
        self._call_log: list[tuple[HandlerContext, tuple[str, ...]]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[HandlerContext, tuple[str, ...]]]:
        """Every (context, args) this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def set_result(self, result: HandlerResult) -> None:
        self._result = result

    def set_failure(self, detail: str = "Mock failure") -> None:
        self._result = HandlerResult.failed(detail)

    def set_exception(self, exc: Exception) -> None:
        self._exception = exc

    def run(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        self._call_log.append((ctx, args))

        if self._exception is not None:
            raise self._exception
        if self._result is not None:
            return self._result
        if ctx.dry_run:
            return HandlerResult.ok(f"[mock] would run {self._name}")
        return HandlerResult.ok(self._default_detail)

    def reset(self) -> None:
        """Clear call log and configured behavior."""
        self._call_log.clear()
        self._result = None
        self._exception = None
