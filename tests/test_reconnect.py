"""재구독 백오프 테스트
Feature: binance-stream, Property 10: 지수 백오프 상한
"""

import asyncio

import pytest
from hypothesis import given, strategies as st, settings

from binance_stream.errors import StreamConnectionError
from binance_stream.multiplexer import StreamMultiplexer
from binance_stream.reconnect import compute_reconnect_delay, subscribe_with_retry
from binance_stream.subscriptions import TradeStream

from fakes import FakeConnector


class FlakyConnector(FakeConnector):
    """처음 failures회는 연결 실패"""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def open(self, subscription):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StreamConnectionError(subscription, f"시도 {self.attempts} 실패")
        return await super().open(subscription)


# ── Property 10: 백오프 ──

class TestReconnectDelay:

    @given(
        attempt=st.integers(min_value=0, max_value=1000),
        max_delay=st.floats(min_value=1.0, max_value=600.0),
    )
    @settings(max_examples=200)
    def test_delay_bounded(self, attempt, max_delay):
        delay = compute_reconnect_delay(attempt, max_delay)
        assert 0 < delay <= max_delay
        assert delay == min(2 ** attempt, max_delay)

    def test_sequence(self):
        assert [compute_reconnect_delay(a) for a in range(8)] == [1, 2, 4, 8, 16, 32, 60, 60]


class TestSubscribeWithRetry:

    def test_retries_until_connected(self):
        sleeps = []

        async def fake_sleep(delay):
            sleeps.append(delay)

        async def scenario():
            connector = FlakyConnector(failures=3)
            mux = StreamMultiplexer(connector)
            channel, attempts = await subscribe_with_retry(
                mux, TradeStream("ethbtc"), max_delay=3.0, sleep=fake_sleep,
            )
            return mux, channel, attempts

        mux, channel, attempts = asyncio.run(scenario())
        assert attempts == 4
        assert sleeps == [1.0, 2.0, 3.0]
        assert TradeStream("ethbtc") in mux
        assert channel.subscription == TradeStream("ethbtc")

    def test_gives_up_after_max_attempts(self):
        sleeps = []

        async def fake_sleep(delay):
            sleeps.append(delay)

        async def scenario():
            mux = StreamMultiplexer(FlakyConnector(failures=10))
            with pytest.raises(StreamConnectionError):
                await subscribe_with_retry(
                    mux, TradeStream("ethbtc"), max_attempts=2, sleep=fake_sleep,
                )
            return mux

        mux = asyncio.run(scenario())
        assert len(mux) == 0
        assert sleeps == [1.0]
