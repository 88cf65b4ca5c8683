"""메모리 버퍼 모듈 - 데이터타입/심볼별 이벤트 레코드 저장 및 플러시"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from collections import defaultdict

from binance_stream.models import (
    AccountUpdateEvent, AllMiniTickersEvent, AllTickersEvent, BinaryEvent,
    PingEvent, PongEvent, StreamEvent, to_record,
)

logger = logging.getLogger(__name__)

# 저장하지 않는 프로토콜/폴백 이벤트
_SKIPPED = (PingEvent, PongEvent, BinaryEvent)


class EventBuffer:
    """메모리 버퍼 - {datatype: {SYMBOL: [record, ...]}}"""

    def __init__(self, max_memory_mb: int = 500):
        self.max_memory_bytes = max_memory_mb * 1024 * 1024
        self._data: dict[str, dict[str, list[dict]]] = defaultdict(lambda: defaultdict(list))
        self._lock = asyncio.Lock()

    async def add_event(self, event: StreamEvent, recv_time: float | None = None) -> int:
        """이벤트 레코드 적재, 적재한 레코드 수 반환 (전체 티커는 심볼별로 분리)"""
        if isinstance(event, _SKIPPED):
            return 0
        recv_time = recv_time or time.time()

        if isinstance(event, (AllMiniTickersEvent, AllTickersEvent)):
            items = event.tickers
        else:
            items = [event]

        async with self._lock:
            for item in items:
                record = to_record(item)
                record["recv_time"] = recv_time
                self._data[item.DATATYPE][self._symbol_of(item)].append(record)
        return len(items)

    @staticmethod
    def _symbol_of(event) -> str:
        if isinstance(event, AccountUpdateEvent):
            return "ACCOUNT"
        return (getattr(event, "symbol", "") or "UNKNOWN").upper()

    async def flush(self) -> dict[str, dict[str, list[dict]]]:
        """모든 데이터를 반환하고 버퍼 초기화"""
        async with self._lock:
            result = {datatype: dict(by_symbol) for datatype, by_symbol in self._data.items()}
            self._data = defaultdict(lambda: defaultdict(list))
            return result

    def record_count(self) -> int:
        return sum(len(records) for by_symbol in self._data.values()
                   for records in by_symbol.values())

    def estimate_memory_usage(self) -> int:
        """현재 메모리 사용량 추정 (바이트)"""
        total = 0
        for by_symbol in self._data.values():
            for records in by_symbol.values():
                total += sys.getsizeof(records)
                for r in records:
                    total += sys.getsizeof(r)
        return total

    def needs_force_flush(self) -> bool:
        """강제 플러시 필요 여부"""
        return self.estimate_memory_usage() >= self.max_memory_bytes
