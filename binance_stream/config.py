"""시스템 설정 모듈 - config.yaml 로드 및 Config 데이터클래스"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from pathlib import Path

import yaml

from binance_stream.subscriptions import Subscription, parse_wire_path


@dataclass
class Config:
    """시스템 설정 (config.yaml에서 로드)"""
    ws_base_url: str = "wss://stream.binance.com:9443/ws"
    rest_base_url: str = "https://api.binance.com"
    api_key: str = ""
    streams: list[str] = field(default_factory=lambda: ["ethbtc@trade", "ethbtc@kline_1m"])
    user_data: bool = False              # listen key 발급 후 유저 데이터 스트림 구독
    ping_interval: float = 20.0
    open_timeout: float = 10.0
    reconnect_max_delay: float = 60.0
    listen_key_keepalive: int = 1800     # 30분
    data_dir: str = "./data"
    log_dir: str = "./logs"
    flush_interval: int = 3600
    max_buffer_mb: int = 500

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """YAML 파일에서 Config 객체 생성 (파일 없으면 기본값)"""
        p = Path(path)
        if not p.exists():
            return cls()
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def to_yaml(self, path: str) -> None:
        """Config 객체를 YAML 파일로 저장"""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(asdict(self), f, default_flow_style=False, allow_unicode=True)

    def to_dict(self) -> dict:
        return asdict(self)

    def subscriptions(self) -> list[Subscription]:
        """streams 목록을 구독 디스크립터로 변환 (잘못된 경로는 ValueError)"""
        return [parse_wire_path(s) for s in self.streams]
