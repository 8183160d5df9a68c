"""Unit tests for the Redis limiter store using a mocked client."""

import json
from unittest.mock import MagicMock

import pytest
import redis

from restrictor.adapters.store.redis_store import UNLOCK_SCRIPT, RedisLimiterStore
from restrictor.core.errors import StoreError
from restrictor.limiter.window import BucketedWindow


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def pipe(client) -> MagicMock:
    pipe = MagicMock()
    client.pipeline.return_value.__enter__.return_value = pipe
    return pipe


@pytest.fixture
def store(client, clock) -> RedisLimiterStore:
    return RedisLimiterStore(client, key_prefix="rl:", lock_timeout_ms=1500, clock=clock)


def test_registers_unlock_script(client, store) -> None:
    client.register_script.assert_called_once_with(UNLOCK_SCRIPT)


@pytest.mark.parametrize(("reply", "expected"), [(True, True), (None, False)])
def test_try_lock_uses_set_nx_px(client, store, reply, expected) -> None:
    client.set.return_value = reply

    assert store.try_lock("user-1", "tok") is expected
    client.set.assert_called_once_with("rl:lock:user-1", "tok", nx=True, px=1500)


def test_unlock_runs_compare_and_delete_script(client, store) -> None:
    script = client.register_script.return_value
    script.return_value = 1

    store.unlock("user-1", "tok")

    script.assert_called_once_with(keys=["rl:lock:user-1"], args=["tok"])


def test_unlock_with_stale_token_is_quiet(client, store) -> None:
    client.register_script.return_value.return_value = 0

    store.unlock("user-1", "stale")


def test_load_missing_key_returns_none(pipe, store) -> None:
    pipe.execute.return_value = [None, -2]

    assert store.load("p_user") is None
    pipe.get.assert_called_once_with("rl:window:p_user")
    pipe.pttl.assert_called_once_with("rl:window:p_user")


def test_load_decodes_window_and_expiry(pipe, store, clock) -> None:
    pipe.execute.return_value = [
        json.dumps({"full_until": 1060, "buckets": {"1000": 3}}),
        42_500,
    ]

    stored = store.load("p_user")

    assert stored.window == BucketedWindow(full_until=1060, buckets={1000: 3})
    assert stored.expires_at == clock.current + 42.5


def test_load_key_without_ttl_expires_now(pipe, store, clock) -> None:
    pipe.execute.return_value = [json.dumps({"full_until": 0, "buckets": {}}), -1]

    assert store.load("p_user").expires_at == clock.current


@pytest.mark.parametrize("raw", ["not-json", json.dumps({"buckets": {"x": 1}})])
def test_load_corrupt_payload_raises_store_error(pipe, store, raw) -> None:
    pipe.execute.return_value = [raw, 1000]

    with pytest.raises(StoreError) as exc_info:
        store.load("p_user")

    assert exc_info.value.code == "store_corrupt_payload"


def test_save_writes_json_with_expiry(client, store) -> None:
    window = BucketedWindow(full_until=0, buckets={1000: 2, 1001: 1})

    store.save("p_user", window, 60)

    name, payload = client.set.call_args.args
    assert name == "rl:window:p_user"
    assert client.set.call_args.kwargs == {"ex": 60}
    assert BucketedWindow.from_dict(json.loads(payload)) == window


def test_save_rejects_non_positive_ttl(store) -> None:
    with pytest.raises(ValueError):
        store.save("p_user", BucketedWindow(), 0)


@pytest.mark.parametrize(
    ("operation", "call"),
    [
        ("try_lock", lambda s: s.try_lock("k", "t")),
        ("save", lambda s: s.save("k", BucketedWindow(), 60)),
    ],
)
def test_client_errors_become_store_errors(client, store, operation, call) -> None:
    client.set.side_effect = redis.exceptions.ConnectionError("connection refused")

    with pytest.raises(StoreError) as exc_info:
        call(store)

    assert exc_info.value.code == "store_unavailable"
    assert exc_info.value.details == {"backend": "redis", "operation": operation}


def test_unlock_error_becomes_store_error(client, store) -> None:
    client.register_script.return_value.side_effect = redis.exceptions.TimeoutError("slow")

    with pytest.raises(StoreError):
        store.unlock("k", "t")


def test_load_error_becomes_store_error(pipe, store) -> None:
    pipe.execute.side_effect = redis.exceptions.ConnectionError("down")

    with pytest.raises(StoreError):
        store.load("k")


def test_invalid_lock_timeout(client) -> None:
    with pytest.raises(ValueError):
        RedisLimiterStore(client, lock_timeout_ms=0)
