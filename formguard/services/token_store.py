"""In-memory CSRF token store with periodic expiry sweeping.

One record per session key. Records are immutable and replaced as a whole,
so a sweep never sees a half-written entry. Expired records are reclaimed by
a background task started with the application and cancelled on shutdown.
"""

import asyncio
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from formguard.core.logging import get_logger

logger = get_logger("token_store")

# How often to sweep expired tokens (in seconds)
SWEEP_INTERVAL_SECONDS = 3600  # 1 hour

TOKEN_BYTES = 32


def generate_token() -> str:
    """Generate a 256-bit random token, hex encoded (64 characters)."""
    return secrets.token_hex(TOKEN_BYTES)


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """Current anti-forgery token for one session."""

    token: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CsrfTokenStore:
    """Thread-safe mapping of session key to TokenRecord."""

    def __init__(
        self,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._records: dict[str, TokenRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._task: asyncio.Task[None] | None = None

    def now(self) -> float:
        return self._clock()

    def put(self, session_key: str, token: str, ttl: float) -> TokenRecord:
        """Insert or overwrite the record for session_key."""
        record = TokenRecord(token=token, expires_at=self._clock() + ttl)
        with self._lock:
            self._records[session_key] = record
        return record

    def get(self, session_key: str) -> TokenRecord | None:
        with self._lock:
            return self._records.get(session_key)

    def sweep(self, now: float | None = None) -> int:
        """Remove expired records. Returns count removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep task."""
        if self.running:
            logger.warning("CSRF token sweep is already running")
            return

        self._task = asyncio.create_task(self._sweep_loop(), name="csrf-token-sweep")
        logger.info(f"CSRF token sweep started (interval: {self._sweep_interval}s)")

    async def stop(self) -> None:
        """Cancel the background sweep task and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("CSRF token sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                removed = self.sweep()
                if removed > 0:
                    logger.info(f"Swept {removed} expired CSRF tokens")
                else:
                    logger.debug("CSRF token sweep: nothing expired")
            except Exception:
                logger.exception("Error sweeping CSRF tokens")
