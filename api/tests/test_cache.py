"""Test the guarded cache write used for unread counts."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import redis

from cardwall.cache import cache_bump, cache_set_int_if_unchanged


def _client(guard_value):
    client = MagicMock()
    pipe = client.pipeline.return_value.__enter__.return_value
    pipe.get.return_value = guard_value
    return client, pipe


def test_write_when_guard_unchanged():
    client, pipe = _client("2")

    with patch("cardwall.cache.get_redis_client", return_value=client):
        assert cache_set_int_if_unchanged("count", 5, guard="gen", seen=2) is True

    pipe.watch.assert_called_once_with("gen")
    pipe.setex.assert_called_once_with("count", 300, 5)
    pipe.execute.assert_called_once()


def test_missing_guard_matches_none():
    client, pipe = _client(None)

    with patch("cardwall.cache.get_redis_client", return_value=client):
        assert cache_set_int_if_unchanged("count", 0, guard="gen", seen=None) is True

    pipe.setex.assert_called_once_with("count", 300, 0)


def test_skip_when_guard_moved():
    client, pipe = _client("3")

    with patch("cardwall.cache.get_redis_client", return_value=client):
        assert cache_set_int_if_unchanged("count", 5, guard="gen", seen=2) is False

    pipe.setex.assert_not_called()


def test_skip_when_guard_bumped_during_transaction():
    client, pipe = _client("2")
    pipe.execute.side_effect = redis.WatchError("gen changed")

    with patch("cardwall.cache.get_redis_client", return_value=client):
        assert cache_set_int_if_unchanged("count", 5, guard="gen", seen=2) is False


def test_no_cache_configured():
    with patch("cardwall.cache.get_redis_client", return_value=None):
        assert cache_set_int_if_unchanged("count", 5, guard="gen", seen=None) is False
        cache_bump("gen")


def test_bump_refreshes_ttl():
    client = MagicMock()

    with patch("cardwall.cache.get_redis_client", return_value=client):
        cache_bump("gen:1", "gen:2", ttl=60)

    pipe = client.pipeline.return_value
    assert pipe.incr.call_count == 2
    pipe.expire.assert_any_call("gen:2", 60)
    pipe.execute.assert_called_once()
