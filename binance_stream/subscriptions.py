"""구독 디스크립터 - 스트림 종류별 불변 값 객체 및 wire path 생성/파싱"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
class Subscription:
    """논리 피드 하나를 식별하는 구독 디스크립터 (변형 + 파라미터로 동등성 판단)"""

    @property
    def wire_path(self) -> str:
        raise NotImplementedError

    @property
    def label(self) -> str:
        """로그용 표시 이름"""
        return self.wire_path

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Subscription):
            return NotImplemented
        return (type(self).__name__, self.wire_path) < (type(other).__name__, other.wire_path)


def _normalize_symbol(sub: Subscription) -> None:
    if not isinstance(sub.symbol, str):
        raise ValueError(f"{type(sub).__name__}: 심볼은 문자열이어야 함 ({sub.symbol!r})")
    symbol = sub.symbol.strip().lower()
    if not symbol:
        raise ValueError(f"{type(sub).__name__}: 빈 심볼")
    # frozen dataclass라 직접 대입 불가
    object.__setattr__(sub, "symbol", symbol)


def _check_positive(sub: Subscription, name: str) -> None:
    value = getattr(sub, name)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{type(sub).__name__}: {name}는 양의 정수여야 함 ({value!r})")


# ── 마켓 데이터 스트림 ──

@dataclass(frozen=True)
class AggTradeStream(Subscription):
    symbol: str

    def __post_init__(self):
        _normalize_symbol(self)

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@aggTrade"


@dataclass(frozen=True)
class TradeStream(Subscription):
    symbol: str

    def __post_init__(self):
        _normalize_symbol(self)

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@trade"


@dataclass(frozen=True)
class KlineStream(Subscription):
    symbol: str
    interval: str  # 1m, 5m, 1h ...

    def __post_init__(self):
        _normalize_symbol(self)
        if not isinstance(self.interval, str) or not self.interval.strip():
            raise ValueError(f"KlineStream: 잘못된 interval ({self.interval!r})")

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@kline_{self.interval}"


@dataclass(frozen=True)
class MiniTickerStream(Subscription):
    symbol: str

    def __post_init__(self):
        _normalize_symbol(self)

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@miniTicker"


@dataclass(frozen=True)
class AllMiniTickersStream(Subscription):

    @property
    def wire_path(self) -> str:
        return "!miniTicker@arr"


@dataclass(frozen=True)
class TickerStream(Subscription):
    symbol: str

    def __post_init__(self):
        _normalize_symbol(self)

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@ticker"


@dataclass(frozen=True)
class AllTickersStream(Subscription):

    @property
    def wire_path(self) -> str:
        return "!ticker@arr"


@dataclass(frozen=True)
class PartialDepthStream(Subscription):
    """상위 N호가 부분 오더북 (levels: 5, 10, 20)"""
    symbol: str
    levels: int

    def __post_init__(self):
        _normalize_symbol(self)
        _check_positive(self, "levels")

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@depth{self.levels}"


@dataclass(frozen=True)
class DiffDepthStream(Subscription):
    symbol: str

    def __post_init__(self):
        _normalize_symbol(self)

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@depth"


@dataclass(frozen=True)
class OrderBookStream(Subscription):
    """지정 depth 오더북 스냅샷 (100ms 갱신)"""
    symbol: str
    depth: int

    def __post_init__(self):
        _normalize_symbol(self)
        _check_positive(self, "depth")

    @property
    def wire_path(self) -> str:
        return f"{self.symbol}@depth{self.depth}@100ms"


# ── 유저 데이터 스트림 ──

@dataclass(frozen=True)
class UserDataStream(Subscription):
    listen_key: str

    def __post_init__(self):
        if not isinstance(self.listen_key, str) or not self.listen_key or "@" in self.listen_key:
            raise ValueError(f"UserDataStream: 잘못된 listen key ({self.listen_key!r})")

    def __repr__(self) -> str:
        # listen key는 세션 자격증명이라 로그에 전체 노출하지 않음
        return f"UserDataStream(listen_key='{self.listen_key[:6]}...')"

    @property
    def label(self) -> str:
        return f"userData:{self.listen_key[:6]}..."

    @property
    def wire_path(self) -> str:
        return self.listen_key


_PATTERNS: list[tuple[re.Pattern, type]] = [
    (re.compile(r"([A-Za-z0-9]+)@aggTrade"), AggTradeStream),
    (re.compile(r"([A-Za-z0-9]+)@trade"), TradeStream),
    (re.compile(r"([A-Za-z0-9]+)@kline_(\w+)"), KlineStream),
    (re.compile(r"([A-Za-z0-9]+)@miniTicker"), MiniTickerStream),
    (re.compile(r"([A-Za-z0-9]+)@ticker"), TickerStream),
    (re.compile(r"([A-Za-z0-9]+)@depth(\d+)@100ms"), OrderBookStream),
    (re.compile(r"([A-Za-z0-9]+)@depth(\d+)"), PartialDepthStream),
    (re.compile(r"([A-Za-z0-9]+)@depth"), DiffDepthStream),
]

_SINGLETONS: dict[str, Subscription] = {
    "!miniTicker@arr": AllMiniTickersStream(),
    "!ticker@arr": AllTickersStream(),
}


def parse_wire_path(path: str) -> Subscription:
    """wire path 문자열을 구독 디스크립터로 변환 (wire_path의 역함수)"""
    path = path.strip()
    if path in _SINGLETONS:
        return _SINGLETONS[path]
    if path and "@" not in path and not path.startswith("!"):
        return UserDataStream(path)

    for pattern, cls in _PATTERNS:
        m = pattern.fullmatch(path)
        if not m:
            continue
        symbol, *rest = m.groups()
        if cls in (PartialDepthStream, OrderBookStream):
            return cls(symbol, int(rest[0]))
        return cls(symbol, *rest)
    raise ValueError(f"알 수 없는 스트림 경로: {path!r}")
