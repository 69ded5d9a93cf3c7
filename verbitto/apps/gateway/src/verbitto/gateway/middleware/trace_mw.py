"""TraceMiddleware -- 为历史任务详情请求绑定 task_address

task_address 从 /api/v1/history/tasks/{address} 路径中提取，
贯穿该请求的全部日志。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_HISTORY_TASK_PREFIX = "/api/v1/history/tasks/"

# base58 公钥长度范围
_MIN_ADDRESS_LEN = 32
_MAX_ADDRESS_LEN = 44


def extract_task_address(path: str) -> str | None:
    """从路径中提取任务地址，非详情路由返回 None"""
    if not path.startswith(_HISTORY_TASK_PREFIX):
        return None
    address = path[len(_HISTORY_TASK_PREFIX):].split("/", 1)[0]
    if _MIN_ADDRESS_LEN <= len(address) <= _MAX_ADDRESS_LEN:
        return address
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 绑定 task_address"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_address = extract_task_address(request.url.path)
        if task_address:
            structlog.contextvars.bind_contextvars(task_address=task_address)

        return await call_next(request)
