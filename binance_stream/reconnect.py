"""재구독 정책 - 멀티플렉서 위에 얹는 호출자 측 지수 백오프"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from binance_stream.errors import StreamConnectionError

if TYPE_CHECKING:
    from binance_stream.connector import Channel
    from binance_stream.multiplexer import StreamMultiplexer
    from binance_stream.subscriptions import Subscription

logger = logging.getLogger(__name__)


def compute_reconnect_delay(attempt: int, max_delay: float = 60.0) -> float:
    """지수 백오프 계산: min(2^attempt, max_delay)"""
    if attempt >= 64:
        return max_delay
    return min(float(2 ** attempt), max_delay)


async def subscribe_with_retry(
    mux: StreamMultiplexer,
    subscription: Subscription,
    max_delay: float = 60.0,
    max_attempts: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[Channel, int]:
    """연결 실패 시 백오프 후 재시도. (채널, 시도 횟수) 반환.
    max_attempts 초과 시 마지막 StreamConnectionError 전파"""
    attempt = 0
    while True:
        try:
            channel = await mux.subscribe(subscription)
            return channel, attempt + 1
        except StreamConnectionError as e:
            attempt += 1
            if max_attempts is not None and attempt >= max_attempts:
                logger.error(f"[재구독 포기] {subscription.label} ({attempt}회 실패): {e.reason}")
                raise
            delay = compute_reconnect_delay(attempt - 1, max_delay)
            logger.error(f"[재구독] {subscription.label} 실패: {e.reason}, {delay}초 후 재시도...")
            await sleep(delay)
