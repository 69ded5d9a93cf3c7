"""Ledger 包测试 fixtures -- 脚本化的 JSON-RPC MockTransport"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from verbitto.ledger import LedgerConfig

RPC_URL = "http://rpc.test"


class ScriptedRpc:
    """按顺序返回预设响应的 RPC 节点

    每个响应可以是 httpx.Response、异常实例，或 result 值（包装为 JSON-RPC 成功响应）。
    """

    def __init__(self) -> None:
        self.responses: list[Any] = []
        self.requests: list[dict[str, Any]] = []

    def push(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": item})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def rpc() -> ScriptedRpc:
    return ScriptedRpc()


@pytest.fixture
def ledger_config() -> LedgerConfig:
    """零退避配置，重试不实际等待"""
    return LedgerConfig(
        rpc_url=RPC_URL,
        max_attempts=3,
        backoff_base_s=0,
        backoff_cap_s=0,
    )


@pytest.fixture
def make_client(rpc: ScriptedRpc, ledger_config: LedgerConfig) -> Callable[..., Any]:
    from verbitto.ledger import SolanaRpcClient

    def _make(config: LedgerConfig | None = None) -> SolanaRpcClient:
        return SolanaRpcClient(config or ledger_config, transport=rpc.transport)

    return _make
