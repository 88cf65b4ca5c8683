"""스트림 무결성 로깅 모듈 - 수신 카운트, 디코딩 에러, 연결 끊김, 플러시 통계"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class IntegrityLogger:
    """스트림별 수신/에러 통계 기록"""

    MAX_EVENT_BUFFER = 10000  # 에러/끊김 기록 최대 보관 수
    PAYLOAD_PREVIEW = 200     # 디코딩 실패 페이로드 보관 길이

    def __init__(self, log_dir: Path | str):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._decode_errors: list[dict] = []
        self._disconnects: list[dict] = []
        self._reconnects: list[dict] = []
        self._flush_stats: list[dict] = []
        self._message_counts: dict[str, int] = defaultdict(int)
        self._daily_totals: dict[str, int] = defaultdict(int)

    def _append(self, store: list[dict], entry: dict) -> None:
        if len(store) >= self.MAX_EVENT_BUFFER:
            del store[:self.MAX_EVENT_BUFFER // 2]
        store.append(entry)

    def increment_message_count(self, stream: str) -> None:
        """프레임 수신 카운트 증가"""
        self._message_counts[stream] += 1

    def record_decode_error(self, stream: str, payload: str | bytes, reason: str,
                            timestamp: float) -> None:
        """디코딩 실패 기록 (페이로드 앞부분만 보관)"""
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        self._append(self._decode_errors, {
            "timestamp": timestamp,
            "stream": stream,
            "reason": reason,
            "payload": payload[:self.PAYLOAD_PREVIEW],
        })
        self._daily_totals["decode_errors"] += 1

    def record_disconnect(self, stream: str, reason: str, timestamp: float) -> None:
        """스트림 종료/끊김 기록"""
        self._append(self._disconnects, {
            "timestamp": timestamp,
            "stream": stream,
            "reason": reason,
        })
        self._daily_totals["disconnects"] += 1
        logger.warning(f"[끊김] {stream}: {reason}")

    def record_reconnect(self, stream: str, attempts: int, timestamp: float) -> None:
        """재구독 성공 기록"""
        self._reconnects.append({
            "timestamp": timestamp,
            "stream": stream,
            "attempts": attempts,
        })
        self._daily_totals["reconnects"] += 1

    def record_flush(self, symbol: str, datatype: str, record_count: int,
                     file_size: int) -> None:
        """플러시 통계 기록"""
        self._flush_stats.append({
            "symbol": symbol,
            "datatype": datatype,
            "record_count": record_count,
            "file_size": file_size,
        })
        self._daily_totals["flushes"] += 1

    def get_periodic_stats(self) -> dict:
        """현재 주기 통계 반환"""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message_counts": dict(self._message_counts),
            "decode_error_count": len(self._decode_errors),
            "decode_errors": list(self._decode_errors),
            "disconnect_count": len(self._disconnects),
            "disconnects": list(self._disconnects),
            "reconnect_count": len(self._reconnects),
            "flush_stats": list(self._flush_stats),
        }

    async def write_periodic_log(self) -> Path:
        """주기적 통계 JSON 로그 작성 후 주기 통계 리셋"""
        stats = self.get_periodic_stats()
        now = datetime.now(timezone.utc)
        log_file = self.log_dir / f"stats_{now.strftime('%Y%m%d_%H')}.json"
        with open(log_file, "w") as f:
            json.dump(stats, f, indent=2, default=str)

        for stream, count in self._message_counts.items():
            self._daily_totals[f"messages:{stream}"] += count
        self._decode_errors.clear()
        self._disconnects.clear()
        self._reconnects.clear()
        self._flush_stats.clear()
        self._message_counts.clear()
        logger.info(f"[로그] {log_file}")
        return log_file

    async def write_daily_summary(self) -> Path:
        """일별 누적 요약 리포트 생성 후 누적값 리셋"""
        now = datetime.now(timezone.utc)
        summary = {"date": now.strftime("%Y-%m-%d"), **self._daily_totals}
        log_file = self.log_dir / f"daily_{now.strftime('%Y%m%d')}.json"
        with open(log_file, "w") as f:
            json.dump(summary, f, indent=2, default=str)
        self._daily_totals.clear()
        return log_file
