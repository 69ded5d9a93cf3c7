"""SolanaRpcClient -- Solana JSON-RPC 调用封装

通过 httpx.AsyncClient 调用 RPC 节点。每次调用携带显式超时；
连接失败、超时、HTTP 429 / 5xx 按有界指数退避重试，
其他 4xx 与 JSON-RPC error 立即抛出。
"""

import asyncio
import itertools
import time
from typing import Any, Protocol

import httpx
import structlog

from .config import LedgerConfig
from .exceptions import LedgerError, LedgerRequestError, LedgerUnreachableError
from .models import LedgerTransaction, SignatureInfo

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# getSignaturesForAddress 单页上限（节点限制）
MAX_SIGNATURES_PER_PAGE = 1000


def backoff_delay(attempt: int, base_s: float, cap_s: float) -> float:
    """第 attempt 次失败后的等待时间：min(base * 2^(attempt-1), cap)"""
    return min(base_s * (2 ** (attempt - 1)), cap_s)


class LedgerClient(Protocol):
    """Backfill 依赖的 ledger 读接口"""

    async def list_program_signatures(
        self,
        program_id: str,
        limit: int,
        before: str | None = None,
    ) -> list[SignatureInfo]:
        """按时间倒序列出程序地址相关的交易签名"""
        ...

    async def get_transaction(self, signature: str) -> LedgerTransaction | None:
        """获取交易体，不存在时返回 None"""
        ...


class SolanaRpcClient:
    """Solana JSON-RPC 客户端"""

    def __init__(
        self,
        config: LedgerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化 RPC 客户端

        Args:
            config: Ledger 配置
            transport: 可选的 httpx transport（测试注入 MockTransport）
        """
        self._config = config
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=config.timeout_s,
            headers={"Content-Type": "application/json"},
        )
        self._ids = itertools.count(1)

    @property
    def config(self) -> LedgerConfig:
        return self._config

    async def _post_once(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self._http.post(self._config.rpc_url, json=payload)
        except httpx.TransportError as e:
            # 覆盖连接失败、DNS 失败与各类超时
            raise LedgerUnreachableError(self._config.rpc_url, e) from e

        if resp.status_code != 200:
            raise LedgerRequestError.from_status(resp.status_code, resp.text)

        try:
            body = resp.json()
        except ValueError as e:
            raise LedgerRequestError(
                f"RPC 响应不是合法 JSON: {e}",
                status_code=resp.status_code,
                recoverable=True,
            ) from e

        if body.get("error") is not None:
            raise LedgerRequestError(
                f"RPC error {method}: {body['error']}",
                status_code=resp.status_code,
                recoverable=False,
            )
        return body.get("result")

    async def call(self, method: str, params: list[Any]) -> Any:
        """发送 JSON-RPC 请求，可重试失败按指数退避重试

        Raises:
            LedgerUnreachableError: 重试耗尽后仍不可达
            LedgerRequestError: 不可重试的错误，或重试耗尽
        """
        start_time = time.monotonic()
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._post_once(method, params)
            except LedgerError as e:
                if not e.recoverable or attempt >= self._config.max_attempts:
                    log.warning(
                        "rpc_call_failed",
                        method=method,
                        attempt=attempt,
                        error=str(e),
                        error_type=type(e).__name__,
                        duration_ms=int((time.monotonic() - start_time) * 1000),
                    )
                    raise
                delay = backoff_delay(
                    attempt,
                    self._config.backoff_base_s,
                    self._config.backoff_cap_s,
                )
                log.debug(
                    "rpc_call_retry",
                    method=method,
                    attempt=attempt,
                    delay_s=delay,
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)

    async def list_program_signatures(
        self,
        program_id: str,
        limit: int,
        before: str | None = None,
    ) -> list[SignatureInfo]:
        """getSignaturesForAddress，最新在前"""
        opts: dict[str, Any] = {
            "limit": min(limit, MAX_SIGNATURES_PER_PAGE),
            "commitment": self._config.commitment,
        }
        if before:
            opts["before"] = before

        result = await self.call("getSignaturesForAddress", [program_id, opts])
        return [
            SignatureInfo(
                signature=item["signature"],
                slot=item.get("slot") or 0,
                block_time=item.get("blockTime"),
                err=item.get("err"),
            )
            for item in result or []
        ]

    async def get_transaction(self, signature: str) -> LedgerTransaction | None:
        """getTransaction（json 编码，支持 v0 交易）"""
        commitment = self._config.commitment
        if commitment == "processed":
            # getTransaction 不支持 processed
            commitment = "confirmed"

        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": commitment,
                },
            ],
        )
        if not result:
            return None
        return LedgerTransaction.from_rpc(signature, result)

    async def health_check(self) -> bool:
        """检查 RPC 节点可达性

        发送 getHealth 请求。

        Returns:
            True 如果节点返回 ok，False 如果不可达或异常

        注意: 此方法不抛出异常，不做重试。
        """
        try:
            resp = await self._http.post(
                self._config.rpc_url,
                json={"jsonrpc": "2.0", "id": next(self._ids), "method": "getHealth"},
                timeout=HEALTH_CHECK_TIMEOUT_S,
            )
            return resp.status_code == 200 and resp.json().get("result") == "ok"
        except (httpx.HTTPError, ValueError) as e:
            log.warning(
                "rpc_health_check_failed",
                rpc_url=self._config.rpc_url,
                error=str(e),
            )
            return False

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接池"""
        await self._http.aclose()
