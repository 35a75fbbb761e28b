"""Async utility functions and the package exception hierarchy.

This module provides:
- Custom exceptions for error handling
- A settle-all join barrier for independent async operations

See DESIGN.md for the error handling strategy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class DiagnosticsError(Exception):
    """Base exception for all diagnostics errors."""


class CallStackParseError(DiagnosticsError):
    """A call-stack line matched neither frame grammar.

    Attributes:
        raw: The offending line, exactly as it appeared in the call stack.
        line_number: 1-based position of the line in the call-stack text.
    """

    def __init__(self, raw: str, line_number: int | None = None) -> None:
        message = f"Could not parse call stack line: {raw!r}"
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)
        self.raw = raw
        self.line_number = line_number


class DebugListingError(DiagnosticsError):
    """A debug listing could not be read or expanded."""


class CatalogError(DiagnosticsError):
    """The message catalog could not be read or parsed."""


class RuntimeNotFoundError(DiagnosticsError):
    """No runtime installation directory could be determined."""


# =============================================================================
# Join Barrier
# =============================================================================


async def settle_all(aws: Iterable[Awaitable[T]]) -> list[T | BaseException]:
    """Wait for every awaitable to finish, successful or not.

    Unlike a plain ``asyncio.gather`` this never short-circuits on the first
    failure: each slot of the returned list holds either the result or the
    exception raised by the awaitable at the same position.

    Args:
        aws: Awaitables to wait for. They may complete in any order.

    Returns:
        Results (or exceptions) in input order.
    """
    pending = list(aws)
    if not pending:
        return []

    results = await asyncio.gather(*pending, return_exceptions=True)

    failures = sum(1 for result in results if isinstance(result, BaseException))
    if failures:
        log.debug("settle_all_failures", total=len(results), failures=failures)

    return list(results)
