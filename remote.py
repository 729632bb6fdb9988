"""Timeouts, retries and background tasks for calls to the remote backend."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, Callable, Dict, Optional, TypeVar

from flask import current_app, has_app_context
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.5
DEFAULT_READ_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.35

# Leaf calls only; parallel fetches and background tasks go to the task pool.
_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="remote")
_TASK_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="remote-task")

logger = logging.getLogger(__name__)


class RemoteServiceError(Exception):
    """Raised when a remote backend operation fails."""

    default_status = 502
    default_error = "remote_failed"

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code or self.default_status
        self.payload = payload or {"error": self.default_error, "detail": message}


class TransientError(RemoteServiceError):
    """Timeout or connectivity failure; worth trying again later."""

    default_status = 503
    default_error = "try_again"


class NotFoundError(RemoteServiceError):
    """Nothing to play: empty catalog or the assigned character is gone."""

    default_status = 404
    default_error = "puzzle_unavailable"


def shared_executor() -> Executor:
    return _TASK_EXECUTOR


def with_timeout(
    func: Callable[[], T],
    timeout: Optional[float] = None,
    label: str = "remote call",
    executor: Optional[Executor] = None,
) -> T:
    """Run ``func`` on the worker pool, failing as transient when it takes too long."""
    if timeout is None:
        timeout = _config_float("REMOTE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
    future = (executor or _EXECUTOR).submit(func)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout as exc:
        future.cancel()
        raise TransientError(f"{label} timed out") from exc
    except RemoteServiceError:
        raise
    except Exception as exc:
        raise TransientError(f"{label} failed: {exc}") from exc


def with_retry(
    func: Callable[[], T],
    attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    label: str = "remote read",
) -> T:
    """Retry an idempotent read on transient failures with exponential backoff."""
    if attempts is None:
        attempts = _config_int("REMOTE_READ_ATTEMPTS", DEFAULT_READ_ATTEMPTS)
    if base_delay is None:
        base_delay = _config_float("REMOTE_RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY)

    retrying = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
        before_sleep=lambda state: _log_warning(
            "Retrying %s after attempt %s: %s", label, state.attempt_number, state.outcome.exception()
        ),
    )
    return retrying(func)


def remote_read(func: Callable[[], T], label: str, executor: Optional[Executor] = None) -> T:
    """Timeout + bounded retry, the standard treatment for backend reads."""
    return with_retry(lambda: with_timeout(func, label=label, executor=executor), label=label)


def remote_write(func: Callable[[], T], label: str, executor: Optional[Executor] = None) -> T:
    """Timeout only; writes are not retried to avoid duplicate side effects."""
    return with_timeout(func, label=label, executor=executor)


def run_parallel(executor: Executor, calls: Dict[str, Callable[[], Any]]) -> Dict[str, Any]:
    """Issue independent calls concurrently and collect results by name.

    The first failure is re-raised once every call has finished.
    """
    futures = {name: executor.submit(call) for name, call in calls.items()}
    results: Dict[str, Any] = {}
    first_error: Optional[BaseException] = None
    for name, future in futures.items():
        try:
            results[name] = future.result()
        except Exception as exc:
            if first_error is None:
                first_error = exc
    if first_error is not None:
        raise first_error
    return results


def fire_and_forget(executor: Executor, func: Callable[[], Any], label: str, app=None) -> Future:
    """Submit a best-effort task whose failure is logged and never propagated."""
    task = in_app_context(app, func) if app is not None else func
    future = executor.submit(task)

    def _report(done: Future) -> None:
        exc = done.exception()
        if exc is None:
            return
        target = app.logger if app is not None else logger
        target.warning("Background task %s failed: %s", label, exc)

    future.add_done_callback(_report)
    return future


def in_app_context(app, func: Callable[[], T]) -> Callable[[], T]:
    """Wrap ``func`` so it runs with ``app`` pushed, for worker threads touching the DB."""
    if app is None:
        return func

    def _wrapped() -> T:
        with app.app_context():
            return func()

    return _wrapped


def _log_warning(message: str, *args: Any) -> None:
    if has_app_context():
        current_app.logger.warning(message, *args)
    else:
        logger.warning(message, *args)


def _config_int(key: str, default: int) -> int:
    if not has_app_context():
        return default
    try:
        return int(current_app.config.get(key, default))
    except (TypeError, ValueError):
        return default


def _config_float(key: str, default: float) -> float:
    if not has_app_context():
        return default
    try:
        return float(current_app.config.get(key, default))
    except (TypeError, ValueError):
        return default
