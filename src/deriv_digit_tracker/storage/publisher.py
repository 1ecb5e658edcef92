"""Redis publication of minute history snapshots and alerts."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from redis.asyncio import Redis

from deriv_digit_tracker.detector.models import AlertEvent
from deriv_digit_tracker.ingestor.models import MinuteRow
from deriv_digit_tracker.storage.export import history_to_json

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "deriv:digits:"
DEFAULT_ALERT_STREAM_MAXLEN = 1000


class SnapshotPublisher:
    """Writes the latest minute history and appends alerts to a Redis stream.

    Keys:
        ``{prefix}history:{symbol}``: JSON minute history (newest first).
        ``{prefix}alerts:{symbol}``: stream of alert events.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        alert_stream_maxlen: int = DEFAULT_ALERT_STREAM_MAXLEN,
    ) -> None:
        self._redis = redis
        self._prefix = key_prefix
        self._alert_stream_maxlen = alert_stream_maxlen

    def history_key(self, symbol: str) -> str:
        return f"{self._prefix}history:{symbol}"

    def alerts_key(self, symbol: str) -> str:
        return f"{self._prefix}alerts:{symbol}"

    async def publish_history(self, symbol: str, rows: Sequence[MinuteRow]) -> None:
        await self._redis.set(self.history_key(symbol), history_to_json(rows, symbol=symbol))

    async def publish_alert(self, symbol: str, event: AlertEvent) -> None:
        fields = {k: str(v) for k, v in event.to_dict().items()}
        await self._redis.xadd(
            self.alerts_key(symbol),
            fields,
            maxlen=self._alert_stream_maxlen,
            approximate=True,
        )
        logger.debug("Published alert %s to %s", event.key, self.alerts_key(symbol))

    async def close(self) -> None:
        await self._redis.aclose()
