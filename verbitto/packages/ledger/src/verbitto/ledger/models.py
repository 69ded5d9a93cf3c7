"""数据模型 -- SignatureInfo + LedgerTransaction"""

from typing import Any

from pydantic import BaseModel, Field


class SignatureInfo(BaseModel):
    """getSignaturesForAddress 返回的单条签名记录"""

    signature: str = Field(description="交易签名")
    slot: int = Field(default=0, description="交易所在 slot")
    block_time: int | None = Field(default=None, description="区块 unix 时间")
    err: Any = Field(default=None, description="交易失败时的错误对象，成功为 None")

    @property
    def failed(self) -> bool:
        return self.err is not None


class LedgerTransaction(BaseModel):
    """getTransaction 返回的交易体

    raw 保留原始 JSON，供指令数据解析使用。
    """

    signature: str
    slot: int = 0
    block_time: int | None = None
    log_lines: list[str] = Field(default_factory=list, description="meta.logMessages")
    raw: dict[str, Any] = Field(default_factory=dict, description="原始 JSON 交易体")

    @classmethod
    def from_rpc(cls, signature: str, result: dict[str, Any]) -> "LedgerTransaction":
        """从 getTransaction 的 result 构造"""
        meta = result.get("meta") or {}
        return cls(
            signature=signature,
            slot=int(result.get("slot") or 0),
            block_time=result.get("blockTime"),
            log_lines=meta.get("logMessages") or [],
            raw=result,
        )
