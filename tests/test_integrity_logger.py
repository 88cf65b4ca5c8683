"""IntegrityLogger 테스트
Feature: binance-stream
Property 15: 디코딩 에러 기록 완전성
"""

import asyncio
import json
import tempfile

from hypothesis import given, strategies as st, settings

from binance_stream.integrity_logger import IntegrityLogger


# ── Property 15: 디코딩 에러 기록 완전성 ──

class TestDecodeErrorCompleteness:

    @given(
        stream=st.sampled_from(["ethbtc@trade", "ethbtc@kline_1m", "!ticker@arr"]),
        payload=st.text(max_size=500),
        reason=st.text(min_size=1, max_size=50),
        timestamp=st.floats(min_value=1.0, max_value=2e10),
    )
    @settings(max_examples=100)
    def test_error_has_all_fields(self, stream, payload, reason, timestamp):
        """에러 레코드는 timestamp, stream, reason, payload(앞부분) 모두 포함"""
        with tempfile.TemporaryDirectory() as tmpdir:
            il = IntegrityLogger(tmpdir)
            il.record_decode_error(stream, payload, reason, timestamp)

            error = il._decode_errors[-1]
            assert error["timestamp"] == timestamp
            assert error["stream"] == stream
            assert error["reason"] == reason
            assert error["payload"] == payload[:IntegrityLogger.PAYLOAD_PREVIEW]


# ── 단위 테스트 ──

class TestIntegrityLoggerUnit:

    def test_bytes_payload_decoded(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            il = IntegrityLogger(tmpdir)
            il.record_decode_error("ethbtc@trade", b"\xff{", "bad", 1.0)
            assert il._decode_errors[0]["payload"] == "\ufffd{"

    def test_record_disconnect_and_reconnect(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            il = IntegrityLogger(tmpdir)
            il.record_disconnect("!ticker@arr", "연결 종료", 1000.0)
            il.record_reconnect("!ticker@arr", 3, 1005.0)
            stats = il.get_periodic_stats()
            assert stats["disconnect_count"] == 1
            assert stats["disconnects"][0]["reason"] == "연결 종료"
            assert stats["reconnect_count"] == 1

    def test_event_buffer_bounded(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            il = IntegrityLogger(tmpdir)
            for i in range(IntegrityLogger.MAX_EVENT_BUFFER + 1):
                il.record_disconnect("ethbtc@trade", "x", float(i))
            assert len(il._disconnects) <= IntegrityLogger.MAX_EVENT_BUFFER
            assert il._disconnects[-1]["timestamp"] == float(IntegrityLogger.MAX_EVENT_BUFFER)

    def test_periodic_log_written_and_reset(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            il = IntegrityLogger(tmpdir)
            il.increment_message_count("ethbtc@trade")
            il.increment_message_count("ethbtc@trade")
            il.record_decode_error("ethbtc@trade", "{", "bad", 1.0)

            path = asyncio.run(il.write_periodic_log())
            with open(path) as f:
                written = json.load(f)
            assert written["message_counts"] == {"ethbtc@trade": 2}
            assert written["decode_error_count"] == 1

            stats = il.get_periodic_stats()
            assert stats["message_counts"] == {}
            assert stats["decode_error_count"] == 0

    def test_daily_summary_accumulates(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            il = IntegrityLogger(tmpdir)
            il.increment_message_count("ethbtc@trade")
            il.record_flush("ETHBTC", "trade", 10, 2048)
            asyncio.run(il.write_periodic_log())
            il.increment_message_count("ethbtc@trade")
            asyncio.run(il.write_periodic_log())

            path = asyncio.run(il.write_daily_summary())
            with open(path) as f:
                summary = json.load(f)
            assert summary["messages:ethbtc@trade"] == 2
            assert summary["flushes"] == 1
            assert path.name.startswith("daily_")
