"""스트림 멀티플렉서 - 동적으로 추가/제거되는 구독 스트림을 하나의 이벤트 시퀀스로 병합

상태:
    Idle    구독 없음. pull()은 즉시 NoStreamSubscribed
    Active  구독 1개 이상. pull()은 준비된 스트림 중 라운드로빈 순서로 다음 이벤트 반환
    Closed  close() 이후. 모든 호출이 MultiplexerClosed

사용 예:
    async with StreamMultiplexer(ChannelConnector()) as mux:
        await mux.subscribe(TradeStream("ethbtc"))
        await mux.subscribe(KlineStream("ethbtc", "1m"))
        while True:
            try:
                event = await mux.pull()
            except DecodeError:
                continue          # 해당 프레임만 버림, 구독 유지
            except StreamDisconnected as e:
                ...               # e.subscription 재구독은 호출자 정책
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TYPE_CHECKING

from binance_stream.decoder import decode
from binance_stream.errors import (
    DecodeError, MultiplexerClosed, NoStreamSubscribed, StreamConnectionError,
    StreamDisconnected,
)
from binance_stream.registry import ChannelRegistry

if TYPE_CHECKING:
    from binance_stream.connector import Channel, ChannelConnector
    from binance_stream.integrity_logger import IntegrityLogger
    from binance_stream.models import StreamEvent
    from binance_stream.registry import ChannelEntry
    from binance_stream.subscriptions import Subscription

logger = logging.getLogger(__name__)


class StreamMultiplexer:
    """구독별 WebSocket 채널을 소유하고 디코딩된 이벤트를 병합해 반환"""

    def __init__(self, connector: ChannelConnector,
                 integrity_logger: IntegrityLogger | None = None):
        self.connector = connector
        self.integrity_logger = integrity_logger
        self._registry = ChannelRegistry()
        self._changed = asyncio.Event()  # 레지스트리 변경 시 대기 중인 pull 깨움
        self._closed = False
        self._pulling = False
        # 채널 정리 중 pull이 취소돼도 끊김 신호는 다음 pull에서 전달
        self._pending_disconnects: deque[StreamDisconnected] = deque()

    # ── 조회 ──

    @property
    def subscriptions(self) -> list[Subscription]:
        return sorted(entry.subscription for entry in self._registry)

    @property
    def closed(self) -> bool:
        return self._closed

    def __contains__(self, subscription: Subscription) -> bool:
        return subscription in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    # ── 구독 관리 ──

    async def subscribe(self, subscription: Subscription) -> Channel:
        """채널 연결 후 등록. 같은 구독이 있으면 기존 연결을 닫고 교체.
        연결 실패 시 레지스트리 불변, StreamConnectionError 전파"""
        self._ensure_open()
        channel = await self.connector.open(subscription)
        if self._closed:
            await channel.close()
            raise MultiplexerClosed()

        previous = self._registry.insert(subscription, channel)
        if previous is not None:
            logger.info(f"[재구독] {subscription.label} 기존 연결 교체")
            await self._release(previous)
        self._changed.set()
        logger.info(f"[구독] {subscription.label} (활성 {len(self._registry)}개)")
        return channel

    async def unsubscribe(self, subscription: Subscription) -> Channel | None:
        """구독 해제 후 닫힌 채널 반환. 미등록 구독이면 None"""
        entry = self._registry.remove(subscription)
        if entry is None:
            return None
        await self._release(entry)
        self._changed.set()
        logger.info(f"[구독 해제] {subscription.label} (활성 {len(self._registry)}개)")
        return entry.channel

    async def close(self) -> None:
        """모든 연결 종료. 대기 중인 pull은 MultiplexerClosed로 깨어남"""
        if self._closed:
            return
        self._closed = True
        entries = self._registry.clear()
        for entry in entries:
            await self._release(entry)
        self._changed.set()
        logger.info(f"[종료] 멀티플렉서 종료 ({len(entries)}개 연결 정리)")

    async def __aenter__(self) -> StreamMultiplexer:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ── 병합 수신 ──

    def __aiter__(self) -> StreamMultiplexer:
        return self

    async def __anext__(self) -> StreamEvent:
        return await self.pull()

    async def pull(self) -> StreamEvent:
        """다음 이벤트 반환. 구독이 없으면 NoStreamSubscribed (무한 대기 없음)"""
        if self._pulling:
            raise RuntimeError("pull()은 단일 소비자만 호출 가능")
        self._pulling = True
        try:
            while True:
                self._ensure_open()
                if self._pending_disconnects:
                    raise self._pending_disconnects.popleft()
                if not len(self._registry):
                    raise NoStreamSubscribed()

                entry = self._registry.next_ready()
                if entry is not None:
                    return await self._take(entry)
                await self._wait_any()
        finally:
            self._pulling = False

    async def _wait_any(self) -> None:
        """수신 태스크 중 하나가 끝나거나 레지스트리가 바뀔 때까지 대기"""
        self._changed.clear()
        reads = self._registry.arm_reads()
        changed = asyncio.create_task(self._changed.wait())
        try:
            await asyncio.wait({*reads, changed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            changed.cancel()

    async def _take(self, entry: ChannelEntry) -> StreamEvent:
        task, entry.read_task = entry.read_task, None
        subscription = entry.subscription
        try:
            frame = task.result()
        except StreamConnectionError as e:
            reason = e.reason
        except asyncio.CancelledError:
            reason = "수신 취소됨"
        else:
            if frame is not None:
                return self._decode(subscription, frame)
            reason = "연결 종료"

        # 채널 종료/에러 → 해당 구독만 제거하고 1회 신호
        if self._registry.get(subscription) is entry:
            self._registry.remove(subscription)
        if self.integrity_logger:
            self.integrity_logger.record_disconnect(subscription.label, reason, time.time())
        else:
            logger.warning(f"[끊김] {subscription.label}: {reason}")
        self._pending_disconnects.append(StreamDisconnected(subscription, reason))
        await self._release(entry)
        raise self._pending_disconnects.popleft()

    def _decode(self, subscription: Subscription, frame) -> StreamEvent:
        if self.integrity_logger:
            self.integrity_logger.increment_message_count(subscription.label)
        try:
            return decode(subscription, frame)
        except DecodeError as e:
            if self.integrity_logger:
                self.integrity_logger.record_decode_error(
                    subscription.label, e.payload, e.reason, time.time()
                )
            logger.warning(f"[디코딩 실패] {subscription.label}: {e.reason}")
            raise

    # ── 내부 ──

    def _ensure_open(self) -> None:
        if self._closed:
            raise MultiplexerClosed()

    @staticmethod
    async def _release(entry: ChannelEntry) -> None:
        entry.discard_read()
        try:
            await entry.channel.close()
        except Exception as e:
            logger.warning(f"[종료 에러] {entry.subscription.label}: {e}")
