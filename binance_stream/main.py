"""메인 애플리케이션 - 구독 등록, 이벤트 수신 루프, 주기 작업 동시 실행"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import time
from pathlib import Path

import aiohttp

from binance_stream.buffer import EventBuffer
from binance_stream.config import Config
from binance_stream.connector import ChannelConnector
from binance_stream.errors import (
    DecodeError, MultiplexerClosed, NoStreamSubscribed, StreamDisconnected,
)
from binance_stream.flusher import Flusher
from binance_stream.integrity_logger import IntegrityLogger
from binance_stream.multiplexer import StreamMultiplexer
from binance_stream.reconnect import subscribe_with_retry
from binance_stream.subscriptions import Subscription, UserDataStream
from binance_stream.user_stream import UserStreamClient, UserStreamError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

IDLE_POLL_INTERVAL = 1.0  # 모든 구독이 끊겨 재구독 대기 중일 때 pull 재시도 간격


class StreamApp:
    """멀티플렉서 이벤트를 버퍼에 적재하고 끊긴 구독을 백그라운드에서 재구독"""

    def __init__(self, config: Config, mux: StreamMultiplexer, buffer: EventBuffer,
                 integrity_logger: IntegrityLogger | None = None):
        self.config = config
        self.mux = mux
        self.buffer = buffer
        self.integrity_logger = integrity_logger
        self._resubscribing: dict[Subscription, asyncio.Task] = {}

    async def subscribe(self, subscription: Subscription) -> int:
        """연결될 때까지 재시도, 시도 횟수 반환"""
        _, attempts = await subscribe_with_retry(
            self.mux, subscription, max_delay=self.config.reconnect_max_delay,
        )
        return attempts

    def schedule_resubscribe(self, subscription: Subscription) -> None:
        """끊긴 구독 재구독 (구독당 태스크 1개)"""
        task = self._resubscribing.get(subscription)
        if task and not task.done():
            return

        async def _resubscribe():
            try:
                attempts = await self.subscribe(subscription)
                if self.integrity_logger:
                    self.integrity_logger.record_reconnect(subscription.label, attempts, time.time())
            except MultiplexerClosed:
                pass
            finally:
                self._resubscribing.pop(subscription, None)

        self._resubscribing[subscription] = asyncio.create_task(
            _resubscribe(), name=f"resubscribe:{subscription.label}"
        )

    async def consume(self) -> None:
        """pull 루프 - MultiplexerClosed까지 계속"""
        while True:
            try:
                event = await self.mux.pull()
            except DecodeError:
                continue
            except StreamDisconnected as e:
                self.schedule_resubscribe(e.subscription)
                continue
            except NoStreamSubscribed:
                await asyncio.sleep(IDLE_POLL_INTERVAL)
                continue
            except MultiplexerClosed:
                return
            await self.buffer.add_event(event)

    async def shutdown(self) -> None:
        for task in list(self._resubscribing.values()):
            task.cancel()
        await self.mux.close()


async def main(config_path: str = "config.yaml") -> None:
    """모든 모듈 초기화 및 동시 실행"""
    config = Config.from_yaml(config_path)
    if not config.api_key:
        config.api_key = os.environ.get("BINANCE_API_KEY", "")

    Path(config.data_dir).mkdir(parents=True, exist_ok=True)
    Path(config.log_dir).mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(Path(config.log_dir) / "stream.log", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)

    integrity_logger = IntegrityLogger(config.log_dir)
    buffer = EventBuffer(config.max_buffer_mb)
    flusher = Flusher(config, buffer, integrity_logger)
    connector = ChannelConnector(
        config.ws_base_url,
        ping_interval=config.ping_interval,
        open_timeout=config.open_timeout,
    )
    mux = StreamMultiplexer(connector, integrity_logger)
    app = StreamApp(config, mux, buffer, integrity_logger)

    subscriptions = config.subscriptions()
    user_client: UserStreamClient | None = None
    listen_key: str | None = None
    if config.user_data:
        if not config.api_key:
            logger.error("[유저스트림] api_key 미설정 - 유저 데이터 스트림 건너뜀")
        else:
            user_client = UserStreamClient(config.rest_base_url, config.api_key)
            listen_key = await user_client.start()
            subscriptions.append(UserDataStream(listen_key))

    logger.info("=== 바이낸스 스트림 멀티플렉서 시작 ===")
    logger.info(f"스트림: {[s.label for s in subscriptions]}")

    await asyncio.gather(*(app.subscribe(s) for s in subscriptions))

    async def keepalive_listen_key():
        while True:
            await asyncio.sleep(config.listen_key_keepalive)
            try:
                await user_client.keepalive(listen_key)
            except (UserStreamError, aiohttp.ClientError) as e:
                logger.error(f"[유저스트림] keepalive 실패: {e}")

    async def periodic_log():
        while True:
            await asyncio.sleep(config.flush_interval)
            await integrity_logger.write_periodic_log()

    async def daily_summary():
        while True:
            await asyncio.sleep(86400)
            await integrity_logger.write_daily_summary()

    async def force_flush_monitor():
        while True:
            await asyncio.sleep(30)
            if buffer.needs_force_flush():
                logger.warning("[강제 플러시] 메모리 임계값 초과")
                await flusher.flush_now()

    background = [
        asyncio.create_task(flusher.run()),
        asyncio.create_task(periodic_log()),
        asyncio.create_task(daily_summary()),
        asyncio.create_task(force_flush_monitor()),
    ]
    if user_client and listen_key:
        background.append(asyncio.create_task(keepalive_listen_key()))

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler():
        logger.info("종료 신호 수신, 연결 정리 중...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    consumer = asyncio.create_task(app.consume())
    await asyncio.wait(
        [asyncio.create_task(shutdown_event.wait()), consumer],
        return_when=asyncio.FIRST_COMPLETED,
    )

    await app.shutdown()
    await consumer
    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)

    logger.info("마지막 플러시 실행...")
    try:
        await flusher.flush_now()
    except Exception as e:
        logger.error(f"마지막 플러시 실패: {e}")

    if user_client and listen_key:
        try:
            await user_client.close(listen_key)
        except (UserStreamError, aiohttp.ClientError) as e:
            logger.error(f"[유저스트림] listen key 폐기 실패: {e}")

    logger.info("=== 시스템 종료 ===")


if __name__ == "__main__":
    config_file = sys.argv[1] if len(sys.argv) > 1 else "config.yaml"
    asyncio.run(main(config_file))
