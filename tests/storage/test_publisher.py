"""Tests for the Redis snapshot publisher."""

import json
from unittest.mock import AsyncMock

import pytest

from deriv_digit_tracker.detector.models import AlertEvent
from deriv_digit_tracker.ingestor.models import MinuteRow
from deriv_digit_tracker.storage.publisher import SnapshotPublisher


@pytest.fixture
def redis() -> AsyncMock:
    return AsyncMock()


class TestSnapshotPublisher:
    @pytest.mark.asyncio
    async def test_publish_history(self, redis: AsyncMock) -> None:
        publisher = SnapshotPublisher(redis, key_prefix="test:")
        rows = [MinuteRow(minute=60, total=1, counts=(0, 1, 0, 0, 0, 0, 0, 0, 0, 0))]

        await publisher.publish_history("R_100", rows)

        redis.set.assert_awaited_once()
        key, payload = redis.set.await_args.args
        assert key == "test:history:R_100"
        assert json.loads(payload)["minutes"][0]["counts"][1] == 1

    @pytest.mark.asyncio
    async def test_publish_alert(self, redis: AsyncMock) -> None:
        publisher = SnapshotPublisher(redis, key_prefix="test:", alert_stream_maxlen=10)
        event = AlertEvent("8-9", "text", 1_700_000_040_000, 8, 9, 20.0, 12.0, 50)

        await publisher.publish_alert("R_100", event)

        redis.xadd.assert_awaited_once()
        args = redis.xadd.await_args
        assert args.args[0] == "test:alerts:R_100"
        assert args.args[1]["key"] == "8-9"
        assert all(isinstance(v, str) for v in args.args[1].values())
        assert args.kwargs["maxlen"] == 10

    @pytest.mark.asyncio
    async def test_close(self, redis: AsyncMock) -> None:
        await SnapshotPublisher(redis).close()
        redis.aclose.assert_awaited_once()
