"""Per-asset 1-minute candle feed.

Keeps a bounded CandleBuffer per asset. Ingestion is tolerant of gaps;
candles older than the last seen timestamp are dropped and a candle with
the same timestamp replaces the (still open) last candle.
"""

import logging
import threading

from signal_core.models.candle import Candle, CandleBuffer

logger = logging.getLogger(__name__)


class CandleFeed:
    """Stores the trailing base-resolution window of every asset.

    ``ingest`` may be called from the event loop while worker threads read
    snapshots, so buffer access is serialized with a lock.
    """

    def __init__(self, max_size: int = 500):
        self.max_size = max_size
        self._buffers: dict[str, CandleBuffer] = {}
        self._lock = threading.Lock()

    def ingest(self, asset: str, candle: Candle) -> bool:
        """Add a 1m candle for ``asset``.

        Returns:
            True if the candle was stored, False if it was dropped as
            out-of-order
        """
        with self._lock:
            buffer = self._buffers.get(asset)
            if buffer is None:
                buffer = self._buffers[asset] = CandleBuffer(asset=asset, max_size=self.max_size)
                logger.info(f"Started candle buffer for {asset} (max {self.max_size})")
            return buffer.add(candle)

    def get_candles(self, asset: str) -> list[Candle]:
        """Get a copy of the buffered candles (oldest first)."""
        with self._lock:
            buffer = self._buffers.get(asset)
            return buffer.snapshot() if buffer is not None else []

    def dropped(self, asset: str) -> int:
        with self._lock:
            buffer = self._buffers.get(asset)
            return buffer.dropped if buffer is not None else 0

    @property
    def assets(self) -> list[str]:
        with self._lock:
            return list(self._buffers)

    def __len__(self) -> int:
        return len(self._buffers)
