"""任务描述路由 -- 按 SHA-256 内容哈希寻址

POST /api/v1/descriptions: 上传描述正文（按哈希幂等 upsert）。
GET /api/v1/descriptions/{hash}: 按哈希读取。

链上 task PDA 只记录描述哈希，正文存在这里。
"""

import hashlib

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from verbitto.core.models import TaskDescription

from ..deps import get_store_group

router = APIRouter(prefix="/api/v1/descriptions")

# 描述正文长度上限（字符）
MAX_DESCRIPTION_LEN = 10_000


class DescriptionUpload(BaseModel):
    """描述上传请求体

    description_hash 可省略，由服务端计算；提供时必须与正文一致。
    task_address 只在该哈希尚未关联任务时记录。
    """

    content: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LEN)
    description_hash: str | None = Field(
        default=None,
        pattern=r"^[0-9a-fA-F]{64}$",
        description="正文 SHA-256（hex）",
    )
    task_address: str | None = None
    creator: str | None = None


def _not_found(description_hash: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": {
                "code": "DESCRIPTION_NOT_FOUND",
                "message": f"Description {description_hash} does not exist",
            }
        },
    )


@router.post("")
async def upload_description(
    body: DescriptionUpload,
    store_group=Depends(get_store_group),
):
    """写入描述，返回存储后的记录"""
    computed = hashlib.sha256(body.content.encode("utf-8")).hexdigest()
    if body.description_hash and body.description_hash.lower() != computed:
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "code": "HASH_MISMATCH",
                    "message": "description_hash does not match sha256(content)",
                }
            },
        )

    description = TaskDescription(
        description_hash=computed,
        content=body.content,
        task_address=body.task_address,
        creator=body.creator,
    )
    await store_group.task_data_store.put_description(description)

    stored = await store_group.task_data_store.get_description(computed)
    return (stored or description).model_dump()


@router.get("/{description_hash}")
async def get_description(
    description_hash: str,
    store_group=Depends(get_store_group),
):
    """按哈希读取描述；只有 backfill 占位（无正文）时同样视为不存在"""
    description = await store_group.task_data_store.get_description(
        description_hash.lower()
    )
    if description is None or not description.content:
        return _not_found(description_hash)
    return description.model_dump()
