"""Parquet 파일 저장 모듈 - 주기적 플러시, 파일명 생성, 체크섬 매니페스트"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from binance_stream.buffer import EventBuffer
    from binance_stream.config import Config
    from binance_stream.integrity_logger import IntegrityLogger

logger = logging.getLogger(__name__)

FILENAME_TEMPLATE = "{symbol}_{datatype}_{stamp}.parquet"
MANIFEST_NAME = "checksums.json"
CHUNK_SIZE = 1 << 16


class Flusher:
    """버퍼 내용을 (심볼, 데이터타입)별 Parquet 파일로 저장"""

    def __init__(self, config: Config, buffer: EventBuffer,
                 integrity_logger: IntegrityLogger | None = None):
        self.config = config
        self.buffer = buffer
        self.integrity_logger = integrity_logger
        self.data_dir = Path(config.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.manifest_path = self.data_dir / MANIFEST_NAME

    async def run(self) -> None:
        """flush_interval 주기 플러시 루프"""
        while True:
            await asyncio.sleep(self.config.flush_interval)
            try:
                await self.flush_now()
            except Exception as e:
                logger.error(f"[플러시 에러] {e}")

    async def flush_now(self) -> list[Path]:
        """즉시 플러시, 생성된 파일 경로 반환"""
        data = await self.buffer.flush()
        now = datetime.now(timezone.utc)
        created: list[Path] = []

        for datatype, by_symbol in data.items():
            for symbol, records in by_symbol.items():
                if records:
                    created.append(self._write_group(symbol, datatype, records, now))
        return created

    def _write_group(self, symbol: str, datatype: str, records: list[dict],
                     now: datetime) -> Path:
        fpath = self.data_dir / self._generate_filename(symbol, datatype, now)
        count = self._save_parquet(records, fpath)
        size = fpath.stat().st_size
        self._append_manifest({
            "filename": fpath.name,
            "symbol": symbol,
            "datatype": datatype,
            "sha256": self.compute_checksum(fpath),
            "record_count": count,
            "file_size": size,
            "created_at": now.isoformat(),
        })
        if self.integrity_logger:
            self.integrity_logger.record_flush(symbol, datatype, count, size)
        logger.info(f"[저장] {fpath.name} ({count}건, {size}B)")
        return fpath

    @staticmethod
    def _generate_filename(symbol: str, datatype: str, timestamp: datetime) -> str:
        return FILENAME_TEMPLATE.format(
            symbol=symbol.upper(), datatype=datatype, stamp=timestamp.strftime("%Y%m%d_%H%M"),
        )

    @staticmethod
    def _save_parquet(records: list[dict], filepath: Path) -> int:
        """레코드를 .partial 파일에 쓴 뒤 최종 경로로 교체 (snappy)"""
        partial = filepath.with_name(f".{filepath.name}.partial")
        frame = pd.DataFrame.from_records(records)
        try:
            frame.to_parquet(partial, index=False, compression="snappy")
            partial.replace(filepath)
        except Exception:
            partial.unlink(missing_ok=True)
            raise
        return len(frame)

    @staticmethod
    def compute_checksum(filepath: Path) -> str:
        digest = hashlib.sha256()
        with filepath.open("rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                digest.update(chunk)
        return digest.hexdigest()

    def _append_manifest(self, entry: dict) -> None:
        """체크섬 매니페스트(JSON 배열)에 항목 추가"""
        entries = json.loads(self.manifest_path.read_text()) if self.manifest_path.exists() else []
        entries.append(entry)
        self.manifest_path.write_text(json.dumps(entries, indent=2))
