"""EventBuffer 테스트
Feature: binance-stream
Property 11: 버퍼 데이터 격리 (데이터타입/심볼별)
Property 12: 플러시 후 버퍼 비움
"""

import asyncio

from hypothesis import given, strategies as st, settings

from binance_stream.buffer import EventBuffer
from binance_stream.models import (
    AccountUpdateEvent, AllMiniTickersEvent, BinaryEvent, KlineEvent, PingEvent,
    TradeEvent,
)

from fakes import (
    build_account_update_payload, build_kline_payload, build_mini_ticker_payload,
    build_trade_payload,
)


# ── 전략 ──

symbol_st = st.sampled_from(["ETHBTC", "BNBBTC", "LTCBTC"])


def run_async(coro):
    return asyncio.run(coro)


def trade(symbol: str, trade_id: int = 1) -> TradeEvent:
    return TradeEvent.from_payload(build_trade_payload(s=symbol, t=trade_id))


# ── Property 11: 데이터 격리 ──

class TestBufferIsolation:

    @given(symbol=symbol_st, trade_id=st.integers(min_value=1, max_value=10**12))
    @settings(max_examples=100)
    def test_data_isolation(self, symbol, trade_id):
        """심볼 S, 데이터타입 T의 레코드는 해당 버퍼에만 존재"""
        buf = EventBuffer()
        run_async(buf.add_event(trade(symbol, trade_id), recv_time=1.0))
        run_async(buf.add_event(KlineEvent.from_payload(build_kline_payload()), recv_time=2.0))

        records = buf._data["trade"][symbol]
        assert len(records) == 1
        assert records[0]["trade_id"] == trade_id
        assert records[0]["symbol"] == symbol
        for other in {"ETHBTC", "BNBBTC", "LTCBTC"} - {symbol}:
            assert len(buf._data["trade"][other]) == 0
        assert len(buf._data["kline"]["ETHBTC"]) == 1
        assert buf._data["kline"]["ETHBTC"][0]["recv_time"] == 2.0


# ── Property 12: 플러시 후 비움 ──

class TestBufferFlush:

    @given(symbols=st.lists(symbol_st, min_size=1, max_size=20))
    @settings(max_examples=100)
    def test_flush_returns_all_and_clears(self, symbols):
        buf = EventBuffer()
        expected_counts = {}
        for i, sym in enumerate(symbols):
            run_async(buf.add_event(trade(sym, i)))
            expected_counts[sym] = expected_counts.get(sym, 0) + 1

        result = run_async(buf.flush())
        assert {s: len(r) for s, r in result["trade"].items()} == expected_counts
        assert buf.record_count() == 0
        assert run_async(buf.flush()) == {}


# ── 단위 테스트 ──

class TestBufferUnit:

    def test_decimal_stored_as_text(self):
        buf = EventBuffer()
        run_async(buf.add_event(trade("ETHBTC")))
        record = buf._data["trade"]["ETHBTC"][0]
        assert record["price"] == "0.06912000"
        assert "recv_time" in record

    def test_all_tickers_split_by_symbol(self):
        buf = EventBuffer()
        event = AllMiniTickersEvent.from_payload(
            [build_mini_ticker_payload("BNBBTC"), build_mini_ticker_payload("ETHBTC")]
        )
        assert run_async(buf.add_event(event)) == 2
        assert set(buf._data["mini_ticker"]) == {"BNBBTC", "ETHBTC"}

    def test_account_update_symbol(self):
        buf = EventBuffer()
        run_async(buf.add_event(AccountUpdateEvent.from_payload(build_account_update_payload())))
        record = buf._data["account_update"]["ACCOUNT"][0]
        assert record["balances"][0] == {"asset": "LTC", "free": "17366.18538083", "locked": "0.00000000"}

    def test_protocol_events_skipped(self):
        buf = EventBuffer()
        assert run_async(buf.add_event(PingEvent(b"x"))) == 0
        assert run_async(buf.add_event(BinaryEvent(b"\x00"))) == 0
        assert buf.record_count() == 0

    def test_force_flush_threshold(self):
        buf = EventBuffer(max_memory_mb=0)
        assert buf.needs_force_flush()
        buf = EventBuffer(max_memory_mb=500)
        run_async(buf.add_event(trade("ETHBTC")))
        assert not buf.needs_force_flush()
