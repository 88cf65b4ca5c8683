"""구독 레지스트리 - 구독 디스크립터 → 열린 채널 + 진행 중인 수신 태스크"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from binance_stream.connector import Channel, Frame
    from binance_stream.subscriptions import Subscription


@dataclass
class ChannelEntry:
    subscription: Subscription
    channel: Channel
    read_task: asyncio.Task | None = None  # 구독당 최대 1개 (미디코딩 프레임 1개까지만 보관)

    def ready(self) -> bool:
        return self.read_task is not None and self.read_task.done()

    def discard_read(self) -> None:
        """진행 중인 수신 취소. 이미 끝난 태스크는 결과를 소비해 경고 방지"""
        task, self.read_task = self.read_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        elif not task.cancelled():
            task.exception()


async def _next_frame(channel: Channel) -> Frame | None:
    """채널의 다음 프레임. 정상 종료 시 None"""
    try:
        return await channel.__anext__()
    except StopAsyncIteration:
        return None


class ChannelRegistry:
    """구독별 엔트리 저장소. 존재 여부가 곧 '활성 구독' 여부"""

    def __init__(self):
        self._entries: dict[Subscription, ChannelEntry] = {}
        self._cursor = 0  # 라운드로빈: 다음 탐색 시작 위치

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, subscription: Subscription) -> bool:
        return subscription in self._entries

    def __iter__(self) -> Iterator[ChannelEntry]:
        return iter(list(self._entries.values()))

    def get(self, subscription: Subscription) -> ChannelEntry | None:
        return self._entries.get(subscription)

    def insert(self, subscription: Subscription, channel: Channel) -> ChannelEntry | None:
        """엔트리 등록. 같은 구독이 있으면 교체하고 이전 엔트리 반환"""
        previous = self._entries.get(subscription)
        self._entries[subscription] = ChannelEntry(subscription, channel)
        return previous

    def remove(self, subscription: Subscription) -> ChannelEntry | None:
        return self._entries.pop(subscription, None)

    def clear(self) -> list[ChannelEntry]:
        entries = list(self._entries.values())
        self._entries.clear()
        self._cursor = 0
        return entries

    def arm_reads(self) -> set[asyncio.Task]:
        """수신 태스크가 없는 엔트리에 태스크 생성, 전체 수신 태스크 반환"""
        tasks = set()
        for entry in self._entries.values():
            if entry.read_task is None:
                entry.read_task = asyncio.create_task(
                    _next_frame(entry.channel),
                    name=f"recv:{entry.subscription.label}",
                )
            tasks.add(entry.read_task)
        return tasks

    def next_ready(self) -> ChannelEntry | None:
        """마지막으로 처리한 구독 다음부터 순회해 준비된 엔트리 반환 (공정성 보장)"""
        entries = list(self._entries.values())
        if not entries:
            return None
        start = self._cursor % len(entries)
        for offset in range(len(entries)):
            idx = (start + offset) % len(entries)
            if entries[idx].ready():
                self._cursor = idx + 1
                return entries[idx]
        return None
