"""HistoricalTask Domain Model

historical_tasks 表是 raw_events 的物化视图（projection），
仅在某个任务地址观察到终态事件后才存在，每次重建整行替换。
"""

from pydantic import BaseModel, Field

from .enums import DeliverableVisibility, FinalStatus
from .event import RawEvent


class HistoricalTask(BaseModel):
    """已关闭任务的摘要记录

    创建相关字段来自 TaskCreated 事件（缺失时从 side table 补全），
    终态相关字段来自最后一个终态事件。
    """

    address: str = Field(description="任务 PDA 地址（base58）")
    title: str = Field(default="", description="任务标题（来自 create_task 指令数据）")
    description_hash: str = Field(default="", description="描述内容 SHA-256（hex）")
    deliverable_hash: str = Field(default="", description="交付物 SHA-256（hex）")
    creator: str = Field(default="", description="创建者地址")
    task_index: str = Field(default="", description="创建者名下的任务序号")
    bounty_lamports: str = Field(default="0", description="悬赏金额（lamports）")
    deadline: int = Field(default=0, description="截止时间（unix 秒）")
    final_status: FinalStatus = Field(description="终态")
    agent: str = Field(default="", description="执行 Agent 地址")
    payout_lamports: str = Field(default="0", description="支付给 Agent 的金额")
    fee_lamports: str = Field(default="0", description="平台手续费")
    refunded_lamports: str = Field(default="0", description="退还给创建者的金额")
    created_at: int = Field(description="创建事件 block time")
    closed_at: int = Field(description="终态事件 block time")
    events: list[RawEvent] | None = Field(
        default=None,
        description="完整事件轨迹（仅详情查询填充）",
    )


class HistoryPage(BaseModel):
    """历史任务分页查询结果"""

    tasks: list[HistoricalTask] = Field(default_factory=list)
    total: int = Field(default=0, description="满足筛选条件的总数")
    limit: int
    offset: int


class TaskData(BaseModel):
    """从创建类指令数据中提取的 side data

    create_task / create_template 直接携带标题和描述哈希；
    create_task_from_template 只记录模板地址，标题和描述哈希沿用模板。
    """

    title: str = Field(default="", description="任务（或模板）标题")
    description_hash: str = Field(default="", description="描述内容 SHA-256（hex）")
    template_address: str | None = Field(
        default=None,
        description="来源模板地址（仅基于模板创建的任务）",
    )


class TaskDescription(BaseModel):
    """按内容哈希寻址的任务描述"""

    description_hash: str = Field(description="描述内容 SHA-256（hex）")
    content: str = Field(default="", description="描述正文，backfill 时可能为空")
    task_address: str | None = Field(default=None, description="关联任务地址")
    creator: str | None = Field(default=None, description="创建者地址")


class DeliverableDescription(BaseModel):
    """按内容哈希寻址的交付物说明

    默认私有；任务结算或争议裁决后公开。
    """

    deliverable_hash: str = Field(description="交付物说明 SHA-256（hex）")
    content: str = Field(description="交付物说明正文")
    task_address: str | None = Field(default=None, description="关联任务地址")
    agent: str | None = Field(default=None, description="提交者地址")
    visibility: DeliverableVisibility = DeliverableVisibility.PRIVATE


class IndexerStats(BaseModel):
    """索引器运行统计"""

    total_events: int = 0
    total_historical_tasks: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    last_event_time: int | None = None
    approved_count: int = 0
    cancelled_count: int = 0
    expired_count: int = 0
    dispute_resolved_count: int = 0


class BackfillResult(BaseModel):
    """一次 backfill 的累计计数"""

    signatures_scanned: int = 0
    transactions_fetched: int = 0
    events_parsed: int = 0
    events_ingested: int = 0
    errors: int = 0
    duration_ms: int = 0
