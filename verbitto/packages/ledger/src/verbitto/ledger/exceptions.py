"""Ledger 异常体系"""


class LedgerError(Exception):
    """Ledger 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class LedgerUnreachableError(LedgerError):
    """RPC 节点不可达（连接失败、超时、DNS 解析失败等）

    可重试。
    """

    def __init__(self, rpc_url: str, original_error: Exception) -> None:
        """
        Args:
            rpc_url: 尝试连接的 RPC 地址
            original_error: 原始异常
        """
        super().__init__(
            f"Solana RPC 不可达: {rpc_url} -- {type(original_error).__name__}: {original_error}",
            recoverable=True,
        )
        self.rpc_url = rpc_url
        self.original_error = original_error


class LedgerRequestError(LedgerError):
    """RPC 返回错误

    HTTP 429 / 5xx 可重试；其他 4xx 与 JSON-RPC error 对象不可重试。
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message, recoverable=recoverable)
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> "LedgerRequestError":
        """按 HTTP 状态码构造，429 与 5xx 标记为可重试"""
        retriable = status_code == 429 or 500 <= status_code < 600
        return cls(
            f"HTTP {status_code} {body[:200]}".rstrip(),
            status_code=status_code,
            recoverable=retriable,
        )
