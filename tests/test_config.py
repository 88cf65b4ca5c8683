"""Config YAML 라운드트립 테스트
Feature: binance-stream, Property 9: 설정 YAML 라운드트립
"""

import tempfile
import os

import pytest
from hypothesis import given, strategies as st, settings

from binance_stream.config import Config
from binance_stream.subscriptions import KlineStream, OrderBookStream, TradeStream, UserDataStream


# ── Hypothesis 전략 ──

stream_st = st.one_of(
    st.from_regex(r"[a-z0-9]{3,10}@(trade|aggTrade|ticker|miniTicker|depth)", fullmatch=True),
    st.from_regex(r"[a-z0-9]{3,10}@kline_(1m|5m|1h|1d)", fullmatch=True),
    st.from_regex(r"[a-z0-9]{3,10}@depth(5|10|20)(@100ms)?", fullmatch=True),
    st.sampled_from(["!ticker@arr", "!miniTicker@arr"]),
)

config_st = st.builds(
    Config,
    ws_base_url=st.sampled_from(["wss://stream.binance.com:9443/ws", "wss://testnet.binance.vision/ws"]),
    rest_base_url=st.sampled_from(["https://api.binance.com", "https://testnet.binance.vision"]),
    api_key=st.from_regex(r"[A-Za-z0-9]{0,64}", fullmatch=True),
    streams=st.lists(stream_st, min_size=1, max_size=5),
    user_data=st.booleans(),
    ping_interval=st.sampled_from([10.0, 20.0, 30.0]),
    open_timeout=st.sampled_from([5.0, 10.0]),
    reconnect_max_delay=st.sampled_from([30.0, 60.0, 120.0]),
    listen_key_keepalive=st.integers(min_value=60, max_value=3600),
    data_dir=st.just("./data"),
    log_dir=st.just("./logs"),
    flush_interval=st.integers(min_value=60, max_value=86400),
    max_buffer_mb=st.integers(min_value=50, max_value=2000),
)


# ── Property 9: Config YAML 라운드트립 ──

class TestConfigYamlRoundtrip:

    @given(config=config_st)
    @settings(max_examples=100)
    def test_yaml_roundtrip(self, config: Config):
        """YAML 저장 후 다시 읽으면 동일한 Config"""
        with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False, mode="w") as f:
            tmp_path = f.name

        try:
            config.to_yaml(tmp_path)
            restored = Config.from_yaml(tmp_path)
            assert config == restored, f"Roundtrip failed: {config} != {restored}"
            # 모든 스트림 경로는 구독 디스크립터로 해석 가능
            assert len(restored.subscriptions()) == len(config.streams)
        finally:
            os.unlink(tmp_path)


# ── 단위 테스트 ──

class TestConfigUnit:

    def test_default_config(self):
        c = Config()
        assert c.streams == ["ethbtc@trade", "ethbtc@kline_1m"]
        assert c.user_data is False
        assert c.reconnect_max_delay == 60.0

    def test_from_yaml_missing_file(self):
        c = Config.from_yaml("/nonexistent/path.yaml")
        assert c == Config()

    def test_from_yaml_ignores_unknown_keys(self):
        with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False, mode="w") as f:
            f.write("streams: [bnbbtc@depth20@100ms]\nunknown_key: 42\n")
            tmp_path = f.name
        try:
            c = Config.from_yaml(tmp_path)
            assert c.streams == ["bnbbtc@depth20@100ms"]
            assert c.subscriptions() == [OrderBookStream("bnbbtc", 20)]
        finally:
            os.unlink(tmp_path)

    def test_subscriptions(self):
        c = Config(streams=["ETHBTC@trade", "ethbtc@kline_1m", "pqia91ma19a5s61cv6a81va65"])
        assert c.subscriptions() == [
            TradeStream("ethbtc"),
            KlineStream("ethbtc", "1m"),
            UserDataStream("pqia91ma19a5s61cv6a81va65"),
        ]

    def test_invalid_stream_rejected(self):
        with pytest.raises(ValueError):
            Config(streams=["ethbtc@bogus"]).subscriptions()
