"""데이터 모델 정의 - 바이낸스 WebSocket 스트림 이벤트

가격/수량 필드는 모두 Decimal. from_payload는 거래소 JSON 객체를 엄격하게 디코딩하며
누락 키/타입 불일치는 KeyError, TypeError, ValueError, InvalidOperation으로 드러난다.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, ClassVar


# ── 필드 변환 헬퍼 ──

def _dec(value: Any) -> Decimal:
    """문자열/JSON 숫자 → Decimal (float 경유 금지)"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        return Decimal(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    raise TypeError(f"decimal 필드 타입 불일치: {value!r}")


def _int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"정수 필드 타입 불일치: {value!r}")
    return value


def _bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"bool 필드 타입 불일치: {value!r}")
    return value


def _str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"문자열 필드 타입 불일치: {value!r}")
    return value


def _opt_str(value: Any) -> str | None:
    return None if value is None else _str(value)


def _obj(value: Any) -> dict:
    if not isinstance(value, dict):
        raise TypeError(f"JSON 객체가 아님: {type(value).__name__}")
    return value


def _levels(value: Any) -> list[list[Decimal]]:
    """[[price, qty], ...] 호가 목록"""
    if not isinstance(value, list):
        raise TypeError(f"호가 목록 타입 불일치: {value!r}")
    levels = []
    for level in value:
        if not isinstance(level, list) or len(level) < 2:
            raise ValueError(f"호가 형식 오류: {level!r}")
        levels.append([_dec(level[0]), _dec(level[1])])
    return levels


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        # str()은 0.00000001을 1E-8로 바꾸므로 고정소수점 표기 사용
        return format(value, "f")
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def to_record(event) -> dict:
    """이벤트 → 직렬화용 dict (Decimal은 원본 문자열 그대로)"""
    return _plain(asdict(event))


# ── 체결 ──

@dataclass
class AggTradeEvent:
    """aggTrade 스트림 이벤트"""
    DATATYPE: ClassVar[str] = "agg_trade"

    event_type: str
    event_time: int              # E (ms)
    symbol: str
    agg_trade_id: int            # a
    price: Decimal
    quantity: Decimal
    first_trade_id: int          # f
    last_trade_id: int           # l
    trade_time: int              # T (ms)
    is_buyer_maker: bool

    @classmethod
    def from_payload(cls, data: Any) -> AggTradeEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            agg_trade_id=_int(d["a"]),
            price=_dec(d["p"]),
            quantity=_dec(d["q"]),
            first_trade_id=_int(d["f"]),
            last_trade_id=_int(d["l"]),
            trade_time=_int(d["T"]),
            is_buyer_maker=_bool(d["m"]),
        )


@dataclass
class TradeEvent:
    """trade 스트림 이벤트"""
    DATATYPE: ClassVar[str] = "trade"

    event_type: str
    event_time: int
    symbol: str
    trade_id: int                # t
    price: Decimal
    quantity: Decimal
    buyer_order_id: int          # b
    seller_order_id: int         # a
    trade_time: int
    is_buyer_maker: bool

    @classmethod
    def from_payload(cls, data: Any) -> TradeEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            trade_id=_int(d["t"]),
            price=_dec(d["p"]),
            quantity=_dec(d["q"]),
            buyer_order_id=_int(d["b"]),
            seller_order_id=_int(d["a"]),
            trade_time=_int(d["T"]),
            is_buyer_maker=_bool(d["m"]),
        )


# ── 캔들 ──

@dataclass
class Kline:
    start_time: int              # t
    close_time: int              # T
    symbol: str
    interval: str
    first_trade_id: int          # f
    last_trade_id: int           # L
    open: Decimal
    close: Decimal
    high: Decimal
    low: Decimal
    volume: Decimal              # v (base)
    trade_count: int             # n
    is_closed: bool              # x
    quote_volume: Decimal        # q
    taker_buy_base_volume: Decimal   # V
    taker_buy_quote_volume: Decimal  # Q

    @classmethod
    def from_payload(cls, data: Any) -> Kline:
        k = _obj(data)
        return cls(
            start_time=_int(k["t"]),
            close_time=_int(k["T"]),
            symbol=_str(k["s"]),
            interval=_str(k["i"]),
            first_trade_id=_int(k["f"]),
            last_trade_id=_int(k["L"]),
            open=_dec(k["o"]),
            close=_dec(k["c"]),
            high=_dec(k["h"]),
            low=_dec(k["l"]),
            volume=_dec(k["v"]),
            trade_count=_int(k["n"]),
            is_closed=_bool(k["x"]),
            quote_volume=_dec(k["q"]),
            taker_buy_base_volume=_dec(k["V"]),
            taker_buy_quote_volume=_dec(k["Q"]),
        )


@dataclass
class KlineEvent:
    """kline 스트림 이벤트 (미확정 캔들 포함)"""
    DATATYPE: ClassVar[str] = "kline"

    event_type: str
    event_time: int
    symbol: str
    kline: Kline

    @classmethod
    def from_payload(cls, data: Any) -> KlineEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            kline=Kline.from_payload(d["k"]),
        )


# ── 티커 ──

@dataclass
class MiniTickerEvent:
    """24hr 미니 티커"""
    DATATYPE: ClassVar[str] = "mini_ticker"

    event_type: str
    event_time: int
    symbol: str
    close: Decimal
    open: Decimal
    high: Decimal
    low: Decimal
    volume: Decimal
    quote_volume: Decimal

    @classmethod
    def from_payload(cls, data: Any) -> MiniTickerEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            close=_dec(d["c"]),
            open=_dec(d["o"]),
            high=_dec(d["h"]),
            low=_dec(d["l"]),
            volume=_dec(d["v"]),
            quote_volume=_dec(d["q"]),
        )


@dataclass
class AllMiniTickersEvent:
    DATATYPE: ClassVar[str] = "mini_ticker"

    tickers: list[MiniTickerEvent]

    @classmethod
    def from_payload(cls, data: Any) -> AllMiniTickersEvent:
        if not isinstance(data, list):
            raise TypeError(f"JSON 배열이 아님: {type(data).__name__}")
        return cls(tickers=[MiniTickerEvent.from_payload(t) for t in data])


@dataclass
class TickerEvent:
    """24hr 티커"""
    DATATYPE: ClassVar[str] = "ticker"

    event_type: str
    event_time: int
    symbol: str
    price_change: Decimal            # p
    price_change_percent: Decimal    # P
    weighted_avg_price: Decimal      # w
    first_price: Decimal             # x
    last_price: Decimal              # c
    last_quantity: Decimal           # Q
    best_bid_price: Decimal          # b
    best_bid_quantity: Decimal       # B
    best_ask_price: Decimal          # a
    best_ask_quantity: Decimal       # A
    open: Decimal
    high: Decimal
    low: Decimal
    volume: Decimal
    quote_volume: Decimal
    stat_open_time: int              # O
    stat_close_time: int             # C
    first_trade_id: int              # F
    last_trade_id: int               # L
    trade_count: int                 # n

    @classmethod
    def from_payload(cls, data: Any) -> TickerEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            price_change=_dec(d["p"]),
            price_change_percent=_dec(d["P"]),
            weighted_avg_price=_dec(d["w"]),
            first_price=_dec(d["x"]),
            last_price=_dec(d["c"]),
            last_quantity=_dec(d["Q"]),
            best_bid_price=_dec(d["b"]),
            best_bid_quantity=_dec(d["B"]),
            best_ask_price=_dec(d["a"]),
            best_ask_quantity=_dec(d["A"]),
            open=_dec(d["o"]),
            high=_dec(d["h"]),
            low=_dec(d["l"]),
            volume=_dec(d["v"]),
            quote_volume=_dec(d["q"]),
            stat_open_time=_int(d["O"]),
            stat_close_time=_int(d["C"]),
            first_trade_id=_int(d["F"]),
            last_trade_id=_int(d["L"]),
            trade_count=_int(d["n"]),
        )


@dataclass
class AllTickersEvent:
    DATATYPE: ClassVar[str] = "ticker"

    tickers: list[TickerEvent]

    @classmethod
    def from_payload(cls, data: Any) -> AllTickersEvent:
        if not isinstance(data, list):
            raise TypeError(f"JSON 배열이 아님: {type(data).__name__}")
        return cls(tickers=[TickerEvent.from_payload(t) for t in data])


# ── 오더북 ──

@dataclass
class PartialDepthEvent:
    """부분 오더북 (페이로드에 심볼이 없어 구독에서 채움)"""
    DATATYPE: ClassVar[str] = "partial_depth"

    symbol: str
    last_update_id: int
    bids: list[list[Decimal]]
    asks: list[list[Decimal]]

    @classmethod
    def from_payload(cls, data: Any, symbol: str = "") -> PartialDepthEvent:
        d = _obj(data)
        return cls(
            symbol=symbol.upper(),
            last_update_id=_int(d["lastUpdateId"]),
            bids=_levels(d["bids"]),
            asks=_levels(d["asks"]),
        )


@dataclass
class OrderBookEvent(PartialDepthEvent):
    """지정 depth 오더북 스냅샷"""
    DATATYPE: ClassVar[str] = "orderbook"


@dataclass
class DiffDepthEvent:
    """depthUpdate 이벤트"""
    DATATYPE: ClassVar[str] = "depth_diff"

    event_type: str
    event_time: int
    symbol: str
    first_update_id: int         # U
    final_update_id: int         # u
    bids: list[list[Decimal]]
    asks: list[list[Decimal]]

    @classmethod
    def from_payload(cls, data: Any) -> DiffDepthEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            first_update_id=_int(d["U"]),
            final_update_id=_int(d["u"]),
            bids=_levels(d["b"]),
            asks=_levels(d["a"]),
        )


# ── 유저 데이터 ──

@dataclass
class Balance:
    asset: str
    free: Decimal
    locked: Decimal

    @classmethod
    def from_payload(cls, data: Any) -> Balance:
        d = _obj(data)
        return cls(asset=_str(d["a"]), free=_dec(d["f"]), locked=_dec(d["l"]))


@dataclass
class AccountUpdateEvent:
    """계정 잔고 업데이트"""
    DATATYPE: ClassVar[str] = "account_update"

    event_type: str
    event_time: int
    maker_commission_rate: int   # m
    taker_commission_rate: int   # t
    buyer_commission_rate: int   # b
    seller_commission_rate: int  # s
    can_trade: bool              # T
    can_withdraw: bool           # W
    can_deposit: bool            # D
    last_update_time: int        # u
    balances: list[Balance] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> AccountUpdateEvent:
        d = _obj(data)
        balances = d["B"]
        if not isinstance(balances, list):
            raise TypeError(f"잔고 목록 타입 불일치: {balances!r}")
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            maker_commission_rate=_int(d["m"]),
            taker_commission_rate=_int(d["t"]),
            buyer_commission_rate=_int(d["b"]),
            seller_commission_rate=_int(d["s"]),
            can_trade=_bool(d["T"]),
            can_withdraw=_bool(d["W"]),
            can_deposit=_bool(d["D"]),
            last_update_time=_int(d["u"]),
            balances=[Balance.from_payload(b) for b in balances],
        )


@dataclass
class OrderUpdateEvent:
    """주문 실행 리포트 (executionReport)"""
    DATATYPE: ClassVar[str] = "order_update"

    event_type: str
    event_time: int
    symbol: str
    client_order_id: str         # c
    side: str                    # S: BUY / SELL
    order_type: str              # o
    time_in_force: str           # f
    quantity: Decimal            # q
    price: Decimal               # p
    stop_price: Decimal          # P
    iceberg_quantity: Decimal    # F
    orig_client_order_id: str | None  # C
    execution_type: str          # x
    order_status: str            # X
    reject_reason: str           # r
    order_id: int                # i
    last_executed_quantity: Decimal   # l
    cumulative_filled_quantity: Decimal  # z
    last_executed_price: Decimal  # L
    commission: Decimal          # n
    commission_asset: str | None  # N
    transaction_time: int        # T
    trade_id: int                # t
    is_working: bool             # w
    is_maker: bool               # m
    creation_time: int           # O
    cumulative_quote_quantity: Decimal  # Z
    last_quote_quantity: Decimal  # Y
    quote_order_quantity: Decimal  # Q

    @classmethod
    def from_payload(cls, data: Any) -> OrderUpdateEvent:
        d = _obj(data)
        return cls(
            event_type=_str(d["e"]),
            event_time=_int(d["E"]),
            symbol=_str(d["s"]),
            client_order_id=_str(d["c"]),
            side=_str(d["S"]),
            order_type=_str(d["o"]),
            time_in_force=_str(d["f"]),
            quantity=_dec(d["q"]),
            price=_dec(d["p"]),
            stop_price=_dec(d["P"]),
            iceberg_quantity=_dec(d["F"]),
            orig_client_order_id=_opt_str(d.get("C")),
            execution_type=_str(d["x"]),
            order_status=_str(d["X"]),
            reject_reason=_str(d["r"]),
            order_id=_int(d["i"]),
            last_executed_quantity=_dec(d["l"]),
            cumulative_filled_quantity=_dec(d["z"]),
            last_executed_price=_dec(d["L"]),
            commission=_dec(d["n"]),
            commission_asset=_opt_str(d.get("N")),
            transaction_time=_int(d["T"]),
            trade_id=_int(d["t"]),
            is_working=_bool(d["w"]),
            is_maker=_bool(d["m"]),
            creation_time=_int(d["O"]),
            cumulative_quote_quantity=_dec(d["Z"]),
            last_quote_quantity=_dec(d["Y"]),
            quote_order_quantity=_dec(d["Q"]),
        )


# ── 프로토콜/폴백 ──

@dataclass
class PingEvent:
    payload: bytes = b""


@dataclass
class PongEvent:
    payload: bytes = b""


@dataclass
class BinaryEvent:
    """예상치 못한 바이너리 프레임 (디코딩하지 않고 전달)"""
    data: bytes


StreamEvent = (
    AggTradeEvent | TradeEvent | KlineEvent | MiniTickerEvent | AllMiniTickersEvent
    | TickerEvent | AllTickersEvent | PartialDepthEvent | OrderBookEvent | DiffDepthEvent
    | AccountUpdateEvent | OrderUpdateEvent | PingEvent | PongEvent | BinaryEvent
)
