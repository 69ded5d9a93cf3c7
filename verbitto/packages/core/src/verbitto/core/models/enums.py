"""枚举定义 -- 程序事件名与任务终态

包含 EventName、FinalStatus、DeliverableVisibility 枚举，
以及 TERMINAL_EVENTS 终态事件映射和 PUBLISHING_EVENTS。
"""

from enum import StrEnum


class EventName(StrEnum):
    """task-escrow 程序发出的 Anchor 事件"""

    PLATFORM_INITIALIZED = "PlatformInitialized"

    # 任务生命周期
    TASK_CREATED = "TaskCreated"
    TASK_CLAIMED = "TaskClaimed"
    DELIVERABLE_SUBMITTED = "DeliverableSubmitted"
    TASK_SETTLED = "TaskSettled"
    SUBMISSION_REJECTED = "SubmissionRejected"
    TASK_CANCELLED = "TaskCancelled"
    TASK_EXPIRED = "TaskExpired"

    TEMPLATE_CREATED = "TemplateCreated"

    # 争议
    DISPUTE_OPENED = "DisputeOpened"
    VOTE_CAST = "VoteCast"
    DISPUTE_RESOLVED = "DisputeResolved"

    # Agent
    AGENT_REGISTERED = "AgentRegistered"
    AGENT_PROFILE_UPDATED = "AgentProfileUpdated"


class FinalStatus(StrEnum):
    """任务终态（账户已关闭）"""

    APPROVED = "Approved"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"
    DISPUTE_RESOLVED = "DisputeResolved"


class DeliverableVisibility(StrEnum):
    """交付物正文可见性"""

    PRIVATE = "private"
    PUBLIC = "public"


# 终态事件 -> 终态
TERMINAL_EVENTS: dict[EventName, FinalStatus] = {
    EventName.TASK_SETTLED: FinalStatus.APPROVED,
    EventName.TASK_CANCELLED: FinalStatus.CANCELLED,
    EventName.TASK_EXPIRED: FinalStatus.EXPIRED,
    EventName.DISPUTE_RESOLVED: FinalStatus.DISPUTE_RESOLVED,
}


def is_terminal_event(event_name: str) -> bool:
    """判断事件名是否会关闭任务"""
    return event_name in TERMINAL_EVENTS


def final_status_for(event_name: str) -> FinalStatus | None:
    """终态事件名 -> FinalStatus，非终态返回 None"""
    try:
        return TERMINAL_EVENTS.get(EventName(event_name))
    except ValueError:
        return None


# 任务成功结束时公开其交付物
PUBLISHING_EVENTS: frozenset[EventName] = frozenset(
    {EventName.TASK_SETTLED, EventName.DISPUTE_RESOLVED}
)


def publishes_deliverable(event_name: str) -> bool:
    """判断事件是否会公开该任务的交付物"""
    return event_name in PUBLISHING_EVENTS
