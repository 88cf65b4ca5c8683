"""메시지 디코더 - (구독, raw 프레임) → 도메인 이벤트"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation

from binance_stream.connector import Frame, FrameKind
from binance_stream.errors import DecodeError
from binance_stream.models import (
    AccountUpdateEvent, AggTradeEvent, AllMiniTickersEvent, AllTickersEvent,
    BinaryEvent, DiffDepthEvent, KlineEvent, MiniTickerEvent, OrderBookEvent,
    OrderUpdateEvent, PartialDepthEvent, PingEvent, PongEvent, StreamEvent,
    TickerEvent, TradeEvent,
)
from binance_stream.subscriptions import (
    AggTradeStream, AllMiniTickersStream, AllTickersStream, DiffDepthStream,
    KlineStream, MiniTickerStream, OrderBookStream, PartialDepthStream,
    Subscription, TickerStream, TradeStream, UserDataStream,
)

# 스키마 불일치로 간주하는 예외
_SCHEMA_ERRORS = (KeyError, TypeError, ValueError, IndexError, InvalidOperation)

_SCHEMAS: dict[type, type] = {
    AggTradeStream: AggTradeEvent,
    TradeStream: TradeEvent,
    KlineStream: KlineEvent,
    MiniTickerStream: MiniTickerEvent,
    AllMiniTickersStream: AllMiniTickersEvent,
    TickerStream: TickerEvent,
    AllTickersStream: AllTickersEvent,
    DiffDepthStream: DiffDepthEvent,
}

# 유저 데이터는 태그 없는 페이로드 - 계정 업데이트를 먼저 시도하고 주문 업데이트로 폴백
USER_DATA_TRIAL_ORDER: tuple[type, ...] = (AccountUpdateEvent, OrderUpdateEvent)


def decode(subscription: Subscription, frame: Frame) -> StreamEvent:
    """구독 변형에 맞는 스키마로 프레임 디코딩. 실패 시 DecodeError"""
    if frame.kind is FrameKind.BINARY:
        return BinaryEvent(frame.data)
    if frame.kind is FrameKind.PING:
        return PingEvent(_as_bytes(frame.data))
    if frame.kind is FrameKind.PONG:
        return PongEvent(_as_bytes(frame.data))

    text = frame.data
    try:
        data = json.loads(text, parse_float=Decimal)
    except (ValueError, TypeError, RecursionError) as e:
        raise DecodeError(subscription, text, f"JSON 파싱 실패: {e}") from e

    try:
        return _decode_payload(subscription, data)
    except _SCHEMA_ERRORS as e:
        raise DecodeError(
            subscription, text, f"스키마 불일치 ({type(e).__name__}: {e})"
        ) from e


def _decode_payload(subscription: Subscription, data) -> StreamEvent:
    if isinstance(subscription, UserDataStream):
        return _decode_user_data(data)
    if isinstance(subscription, OrderBookStream):
        return OrderBookEvent.from_payload(data, symbol=subscription.symbol)
    if isinstance(subscription, PartialDepthStream):
        return PartialDepthEvent.from_payload(data, symbol=subscription.symbol)

    schema = _SCHEMAS.get(type(subscription))
    if schema is None:
        raise TypeError(f"지원하지 않는 구독 타입: {type(subscription).__name__}")
    return schema.from_payload(data)


def _decode_user_data(data) -> StreamEvent:
    errors = []
    for schema in USER_DATA_TRIAL_ORDER:
        try:
            return schema.from_payload(data)
        except _SCHEMA_ERRORS as e:
            errors.append(f"{schema.__name__}: {type(e).__name__} {e}")
    raise ValueError("유저 데이터 스키마 불일치 - " + "; ".join(errors))


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode() if isinstance(data, str) else bytes(data)
