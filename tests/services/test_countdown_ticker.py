"""
Tests for the periodic countdown ticker
"""
import asyncio
from datetime import datetime, timedelta, timezone

from api.services.countdown_ticker import CountdownTicker

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestCountdownTicker:
    """Ticker start/stop lifecycle"""

    def test_tick_reads_clock_each_time(self):
        clock = {"now": NOW}
        ticker = CountdownTicker(NOW + timedelta(hours=2), on_tick=lambda c: None, clock=lambda: clock["now"])
        assert ticker.tick().hours == 2
        clock["now"] = NOW + timedelta(hours=1)
        assert ticker.tick().hours == 1

    def test_callbacks_stop_after_stop(self):
        """No callback fires once stop() has returned"""
        received = []

        async def scenario():
            ticker = CountdownTicker(
                NOW + timedelta(days=1), on_tick=received.append, interval=0.01, clock=lambda: NOW
            )
            ticker.start()
            assert ticker.running is True
            await asyncio.sleep(0.05)
            await ticker.stop()
            assert ticker.running is False
            count = len(received)
            await asyncio.sleep(0.05)
            return count

        count = asyncio.run(scenario())
        assert count >= 1
        assert len(received) == count
        assert all(c.days == 1 for c in received)

    def test_async_context_manager_and_async_callback(self):
        received = []

        async def on_tick(countdown):
            received.append(countdown)

        async def scenario():
            async with CountdownTicker(None, on_tick=on_tick, interval=0.01) as ticker:
                await asyncio.sleep(0.03)
            return ticker

        ticker = asyncio.run(scenario())
        assert ticker.running is False
        assert received
        assert received[0].has_expiry is False

    def test_stop_without_start_is_harmless(self):
        ticker = CountdownTicker(NOW, on_tick=lambda c: None)
        asyncio.run(ticker.stop())
        assert ticker.running is False
