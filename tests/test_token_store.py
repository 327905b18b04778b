"""Tests for the in-memory CSRF token store."""

import asyncio
import dataclasses
import string

import pytest

from formguard.services.token_store import (
    SWEEP_INTERVAL_SECONDS,
    CsrfTokenStore,
    TokenRecord,
    generate_token,
)


class TestGenerateToken:
    """Tests for token generation."""

    def test_token_is_64_hex_characters(self):
        """Test that tokens are 32 random bytes in hex."""
        token = generate_token()
        assert len(token) == 64
        assert set(token) <= set(string.hexdigits.lower())

    def test_tokens_are_unique(self):
        """Test that generated tokens do not repeat."""
        tokens = {generate_token() for _ in range(200)}
        assert len(tokens) == 200


class TestTokenRecord:
    """Tests for TokenRecord."""

    def test_record_is_immutable(self):
        """Test that TokenRecord cannot be modified."""
        record = TokenRecord(token="abc", expires_at=100.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.token = "def"  # type: ignore[misc]

    def test_is_expired_only_after_expiry(self):
        """Test that a record expires strictly after expires_at."""
        record = TokenRecord(token="abc", expires_at=100.0)
        assert record.is_expired(99.0) is False
        assert record.is_expired(100.0) is False
        assert record.is_expired(100.5) is True


class TestPutAndGet:
    """Tests for put/get."""

    def test_get_missing_returns_none(self, store):
        """Test that an unknown key returns None."""
        assert store.get("nobody") is None

    def test_put_sets_expiry_from_clock(self, store, clock):
        """Test that expiry is now plus the TTL."""
        store.put("s1", "t1", ttl=3600)

        record = store.get("s1")
        assert record is not None
        assert record.token == "t1"
        assert record.expires_at == clock.now + 3600

    def test_put_overwrites_existing_record(self, store):
        """Test that put replaces the previous token."""
        store.put("s1", "t1", ttl=3600)
        store.put("s1", "t2", ttl=3600)

        assert store.get("s1").token == "t2"
        assert len(store) == 1

    def test_get_does_not_extend_expiry(self, store, clock):
        """Test that reads do not refresh expiry."""
        store.put("s1", "t1", ttl=60)
        before = store.get("s1").expires_at

        clock.advance(30)
        store.get("s1")

        assert store.get("s1").expires_at == before

    def test_keys_are_independent(self, store):
        """Test that sessions do not share records."""
        store.put("s1", "t1", ttl=60)
        store.put("s2", "t2", ttl=60)

        assert store.get("s1").token == "t1"
        assert store.get("s2").token == "t2"


class TestSweep:
    """Tests for expiry sweeping."""

    def test_sweep_removes_only_expired_records(self, store, clock):
        """Test that sweep removes expired records and keeps live ones."""
        store.put("short", "t1", ttl=10)
        store.put("long", "t2", ttl=1000)

        clock.advance(11)
        removed = store.sweep()

        assert removed == 1
        assert store.get("short") is None
        assert store.get("long") is not None

    def test_sweep_with_explicit_now(self, store, clock):
        """Test that sweep accepts an explicit timestamp."""
        store.put("s1", "t1", ttl=10)

        assert store.sweep(now=clock.now + 5) == 0
        assert store.sweep(now=clock.now + 20) == 1

    def test_sweep_on_empty_store(self, store):
        assert store.sweep() == 0


class TestSweepLifecycle:
    """Tests for the background sweep task."""

    def test_default_interval_is_one_hour(self):
        """Test that the sweep runs hourly by default."""
        assert SWEEP_INTERVAL_SECONDS == 3600
        assert CsrfTokenStore()._sweep_interval == 3600

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        """Test that start and stop toggle the sweep task."""
        store = CsrfTokenStore(sweep_interval=3600)

        await store.start()
        assert store.running is True

        await store.stop()
        assert store.running is False

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self):
        """Test that a second start does not spawn another task."""
        store = CsrfTokenStore(sweep_interval=3600)

        await store.start()
        first_task = store._task
        await store.start()

        assert store._task is first_task
        await store.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start_is_safe(self):
        """Test that stop before start does nothing."""
        store = CsrfTokenStore()
        await store.stop()
        assert store.running is False

    @pytest.mark.asyncio
    async def test_background_loop_sweeps_expired_records(self, clock):
        """Test that the background loop removes expired records."""
        store = CsrfTokenStore(sweep_interval=0.01, clock=clock)
        store.put("s1", "t1", ttl=10)
        clock.advance(60)

        await store.start()
        try:
            for _ in range(100):
                if len(store) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await store.stop()

        assert store.get("s1") is None

    @pytest.mark.asyncio
    async def test_loop_survives_sweep_errors(self, clock, monkeypatch):
        """Test that a failing sweep does not stop the loop."""
        store = CsrfTokenStore(sweep_interval=0.01, clock=clock)
        calls = []

        def failing_sweep(now=None):
            calls.append(now)
            raise RuntimeError("boom")

        monkeypatch.setattr(store, "sweep", failing_sweep)

        await store.start()
        try:
            for _ in range(100):
                if len(calls) >= 2:
                    break
                await asyncio.sleep(0.01)
            assert store.running is True
        finally:
            await store.stop()

        assert len(calls) >= 2
