"""Tests for timeouts, retries and background task helpers."""

import logging
import threading

import pytest

from remote import (
    NotFoundError,
    RemoteServiceError,
    TransientError,
    fire_and_forget,
    remote_read,
    run_parallel,
    with_retry,
    with_timeout,
)
from tests.conftest import InlineExecutor


class TestErrors:
    def test_hierarchy_and_defaults(self):
        assert issubclass(TransientError, RemoteServiceError)
        assert issubclass(NotFoundError, RemoteServiceError)
        assert TransientError("x").status_code == 503
        assert TransientError("x").payload == {"error": "try_again", "detail": "x"}
        assert NotFoundError("gone").status_code == 404
        assert RemoteServiceError("boom").status_code == 502


class TestWithTimeout:
    def test_returns_result(self):
        assert with_timeout(lambda: 42, timeout=1) == 42

    def test_slow_call_becomes_transient(self):
        release = threading.Event()
        try:
            with pytest.raises(TransientError, match="timed out"):
                with_timeout(lambda: release.wait(5), timeout=0.05, label="slow read")
        finally:
            release.set()

    def test_unexpected_failure_becomes_transient(self):
        def boom():
            raise ConnectionError("socket closed")

        with pytest.raises(TransientError, match="socket closed"):
            with_timeout(boom, timeout=1)

    def test_remote_errors_pass_through(self):
        def not_found():
            raise NotFoundError("missing")

        with pytest.raises(NotFoundError):
            with_timeout(not_found, timeout=1)


class TestWithRetry:
    def test_retries_transient_errors_until_success(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransientError("try again")
            return "ok"

        assert with_retry(flaky, attempts=3, base_delay=0) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_the_last_attempt(self):
        calls = []

        def always_down():
            calls.append(1)
            raise TransientError("down")

        with pytest.raises(TransientError):
            with_retry(always_down, attempts=2, base_delay=0)
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self):
        calls = []

        def rejected():
            calls.append(1)
            raise RemoteServiceError("rejected")

        with pytest.raises(RemoteServiceError):
            with_retry(rejected, attempts=3, base_delay=0)
        assert len(calls) == 1

    def test_remote_read_uses_app_config(self, app):
        calls = []

        def flaky():
            calls.append(1)
            raise ConnectionError("reset")

        app.config["REMOTE_READ_ATTEMPTS"] = 2
        with pytest.raises(TransientError):
            remote_read(flaky, label="flaky read")
        assert len(calls) == 2


class TestTasks:
    def test_run_parallel_collects_by_name(self):
        results = run_parallel(InlineExecutor(), {"a": lambda: 1, "b": lambda: 2})
        assert results == {"a": 1, "b": 2}

    def test_run_parallel_reraises_first_error(self):
        def fail():
            raise TransientError("nope")

        with pytest.raises(TransientError):
            run_parallel(InlineExecutor(), {"a": fail, "b": lambda: 2})

    def test_fire_and_forget_logs_failures(self, caplog):
        def fail():
            raise RuntimeError("counter offline")

        with caplog.at_level(logging.WARNING):
            future = fire_and_forget(InlineExecutor(), fail, "wins increment")

        assert isinstance(future.exception(), RuntimeError)
        assert "wins increment" in caplog.text

    def test_fire_and_forget_pushes_app_context(self, app):
        from flask import current_app

        future = fire_and_forget(InlineExecutor(), lambda: current_app.name, "ctx", app=app)
        assert future.result() == app.name
