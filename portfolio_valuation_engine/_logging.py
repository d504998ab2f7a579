"""Logging instrumentation for the valuation engine.

Thin decorators over the standard library logger. The package never installs
handlers; applications (or ``run_valuation.py``) configure logging.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable


portfolio_logger = logging.getLogger("portfolio_valuation_engine")


def log_operation(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Emit DEBUG records around an operation."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            portfolio_logger.debug("[%s] start", name)
            result = fn(*args, **kwargs)
            portfolio_logger.debug("[%s] done", name)
            return result

        return wrapper

    return deco


def log_timing(threshold: float = 0.0) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Warn when the wrapped call takes longer than ``threshold`` seconds."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - started
                if threshold and elapsed > threshold:
                    portfolio_logger.warning(
                        "slow_operation: %s took %.3fs (threshold %.3fs)",
                        fn.__qualname__,
                        elapsed,
                        threshold,
                    )

        return wrapper

    return deco


def log_errors(severity: str = "medium") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Log unexpected exceptions with a severity tag, then re-raise."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except Exception:
                portfolio_logger.exception("[%s] %s failed", severity, fn.__qualname__)
                raise

        return wrapper

    return deco


def log_portfolio_operation(
    event: str,
    details: dict[str, Any] | None = None,
    execution_time: float | None = None,
) -> dict[str, Any]:
    if details:
        portfolio_logger.info("[%s] %s", event, details)
    else:
        portfolio_logger.info("[%s]", event)
    return {"event": event, "details": details or {}, "execution_time": execution_time}


def log_critical_alert(
    alert_type: str,
    severity: str,
    message: str,
    action: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    portfolio_logger.warning(
        "critical_alert[%s/%s]: %s %s%s",
        alert_type,
        severity,
        message,
        details or {},
        f" (action: {action})" if action else "",
    )
