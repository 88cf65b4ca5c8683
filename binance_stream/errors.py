"""스트림 멀티플렉서 예외 정의"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from binance_stream.subscriptions import Subscription


class MultiplexerError(Exception):
    """멀티플렉서 공통 예외"""


class StreamConnectionError(MultiplexerError):
    """스트림 연결/수신 실패 (해당 구독에만 치명적)"""

    def __init__(self, subscription: Subscription, reason: str):
        super().__init__(f"{subscription.label}: {reason}")
        self.subscription = subscription
        self.reason = reason


class StreamDisconnected(StreamConnectionError):
    """등록된 스트림 종료 신호 - 구독당 한 번만 발생, 레지스트리에서 제거됨"""


class DecodeError(MultiplexerError):
    """프레임 디코딩 실패 (해당 프레임에만 치명적, 구독은 유지)"""

    def __init__(self, subscription: Subscription, payload: str | bytes, reason: str):
        super().__init__(f"{subscription.label}: {reason}")
        self.subscription = subscription
        self.payload = payload
        self.reason = reason


class NoStreamSubscribed(MultiplexerError):
    """구독이 하나도 없는 상태에서 pull 호출"""

    def __init__(self):
        super().__init__("구독 중인 스트림 없음")


class MultiplexerClosed(MultiplexerError):
    """close() 이후 호출"""

    def __init__(self):
        super().__init__("멀티플렉서가 종료됨")
