"""WebSocket 채널 커넥터 - 구독당 연결 1개 생성 및 raw 프레임 수신"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException

from binance_stream.errors import StreamConnectionError

if TYPE_CHECKING:
    from binance_stream.subscriptions import Subscription

logger = logging.getLogger(__name__)

WS_URL = "wss://stream.binance.com:9443/ws"


class FrameKind(Enum):
    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"


@dataclass(frozen=True)
class Frame:
    """디코딩 전 raw 프레임"""
    kind: FrameKind
    data: str | bytes


class Channel:
    """구독 하나에 대응하는 WebSocket 연결. 종료될 때까지 Frame을 비동기로 반환"""

    def __init__(self, subscription: Subscription, connection):
        self.subscription = subscription
        self._connection = connection
        self.closed = False

    def __aiter__(self) -> Channel:
        return self

    async def __anext__(self) -> Frame:
        try:
            data = await self._connection.recv()
        except ConnectionClosedOK:
            raise StopAsyncIteration
        except (ConnectionClosedError, OSError) as e:
            raise StreamConnectionError(self.subscription, f"연결 비정상 종료: {e}") from e

        if isinstance(data, (bytes, bytearray)):
            return Frame(FrameKind.BINARY, bytes(data))
        return Frame(FrameKind.TEXT, data)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._connection.close()
        logger.info(f"[종료] {self.subscription.label} 연결 종료")


class ChannelConnector:
    """base URL + wire path로 구독별 WebSocket 연결 생성 (재시도 없음)"""

    def __init__(self, base_url: str = WS_URL, ping_interval: float | None = 20.0,
                 open_timeout: float | None = 10.0):
        self.base_url = base_url
        self.ping_interval = ping_interval
        self.open_timeout = open_timeout

    def build_url(self, subscription: Subscription) -> str:
        return f"{self.base_url.rstrip('/')}/{subscription.wire_path}"

    async def open(self, subscription: Subscription) -> Channel:
        """핸드셰이크 수행. 주소 해석/핸드셰이크/전송 실패는 모두 StreamConnectionError"""
        url = self.build_url(subscription)
        try:
            connection = await websockets.connect(
                url,
                ping_interval=self.ping_interval,
                open_timeout=self.open_timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.error(f"[연결 실패] {subscription.label}: {e}")
            raise StreamConnectionError(subscription, f"연결 실패: {e}") from e

        logger.info(f"[연결] {subscription.label} 연결 성공")
        return Channel(subscription, connection)
