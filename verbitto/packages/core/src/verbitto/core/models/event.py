"""RawEvent Domain Model

raw_events 表 append-only：同一 id 只写一次，之后的重复写入为空操作。
id 由签名和事件名确定性生成，是 webhook 与 backfill 两条摄入路径的幂等键。
"""

from pydantic import BaseModel, Field


def make_event_id(signature: str, event_name: str, occurrence: int = 0) -> str:
    """生成去重键 signature:eventName

    同一交易内同名事件出现多次时，第 2 次起追加 #1、#2…
    """
    base = f"{signature}:{event_name}"
    if occurrence:
        return f"{base}#{occurrence}"
    return base


class RawEvent(BaseModel):
    """解码后的单条程序事件

    data 中所有数值和公钥都以字符串存储，避免精度损失。
    """

    id: str = Field(description="去重键，signature:eventName")
    signature: str = Field(description="交易签名")
    slot: int = Field(description="交易所在 slot")
    block_time: int = Field(description="区块 unix 时间（秒）")
    event_name: str = Field(description="Anchor 事件名，如 TaskCreated")
    data: dict[str, str] = Field(default_factory=dict, description="事件字段（全部字符串化）")
    task_address: str | None = Field(
        default=None,
        description="关联的任务 PDA 地址（取自 data.task）",
    )

    def sort_key(self) -> tuple[int, int, str]:
        """事件的确定性时间序：block_time, slot, id"""
        return (self.block_time, self.slot, self.id)
