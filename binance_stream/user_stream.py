"""유저 데이터 스트림 listen key 관리 - 발급, 연장(keepalive), 폐기"""

from __future__ import annotations

import logging

import aiohttp

logger = logging.getLogger(__name__)

USER_DATA_STREAM = "/api/v3/userDataStream"


class UserStreamError(Exception):
    """listen key REST 호출 실패"""

    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body}")
        self.status = status
        self.body = body


class UserStreamClient:
    """listen key REST API 클라이언트 (API 키 헤더만 필요, 서명 불필요)"""

    def __init__(self, rest_base_url: str, api_key: str, timeout: float = 10.0):
        self.url = f"{rest_base_url.rstrip('/')}{USER_DATA_STREAM}"
        self.api_key = api_key
        self.timeout = timeout

    async def start(self) -> str:
        """listen key 발급"""
        data = await self._request("POST")
        listen_key = data.get("listenKey") if isinstance(data, dict) else None
        if not listen_key:
            raise UserStreamError(200, f"listenKey 없음: {data}")
        logger.info(f"[유저스트림] listen key 발급 ({listen_key[:6]}...)")
        return listen_key

    async def keepalive(self, listen_key: str) -> None:
        """listen key 유효기간 연장 (60분 만료, 30분 주기 호출 권장)"""
        await self._request("PUT", {"listenKey": listen_key})
        logger.info(f"[유저스트림] listen key 연장 ({listen_key[:6]}...)")

    async def close(self, listen_key: str) -> None:
        """listen key 폐기"""
        await self._request("DELETE", {"listenKey": listen_key})
        logger.info(f"[유저스트림] listen key 폐기 ({listen_key[:6]}...)")

    async def _request(self, method: str, params: dict | None = None):
        headers = {"X-MBX-APIKEY": self.api_key}
        async with aiohttp.ClientSession() as session:
            async with session.request(
                method, self.url,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    logger.warning(f"[유저스트림] {method} 실패 HTTP {resp.status}: {body}")
                    raise UserStreamError(resp.status, body)
                return await resp.json()
