from __future__ import annotations

import requests

from steam_roster_enricher.utils.utilities import with_retries


def _http_error(status: int, headers: dict | None = None) -> requests.exceptions.HTTPError:
    class Resp:
        status_code = status

    Resp.headers = headers or {}
    e = requests.exceptions.HTTPError(f"{status}")
    e.response = Resp()
    return e


def test_with_retries_respects_retry_after(no_sleep):
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        if calls["n"] == 1:
            raise _http_error(429, {"Retry-After": "0.02"})
        return "ok"

    stats: dict = {}
    out = with_retries(
        fn,
        retries=2,
        base_sleep_s=0.0,
        jitter_s=0.0,
        retry_on=(requests.exceptions.HTTPError,),
        context="test",
        retry_stats=stats,
    )
    assert out == "ok"
    assert len(no_sleep) == 1
    assert no_sleep[0] >= 0.02
    assert stats["http_429_retries"] == 1


def test_client_errors_are_not_retried(no_sleep):
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        raise _http_error(404)

    stats: dict = {}
    out = with_retries(fn, retries=3, on_fail_return="failed", context="test", retry_stats=stats)
    assert out == "failed"
    assert calls["n"] == 1
    assert no_sleep == []
    assert stats["last_error"].startswith("HTTPError")


def test_network_errors_back_off_until_exhausted(no_sleep):
    def fn():
        raise requests.exceptions.ConnectionError("offline")

    stats: dict = {}
    out = with_retries(
        fn, retries=3, base_sleep_s=1.0, jitter_s=0.0, context="test", retry_stats=stats
    )
    assert out is None
    assert no_sleep == [1.0, 2.0]
    assert stats["network_failures"] == 1
    assert "offline" in stats["last_error"]
