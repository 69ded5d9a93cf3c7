"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import Callable

import pytest
from verbitto.core.models import RawEvent, make_event_id


@pytest.fixture
def make_event() -> Callable[..., RawEvent]:
    """RawEvent 工厂：make_event(name, signature, block_time, slot=..., **data)"""

    def _make(
        event_name: str,
        signature: str,
        block_time: int,
        slot: int | None = None,
        task: str | None = "TaskAddr1111111111111111111111111111111111",
        **data: str,
    ) -> RawEvent:
        fields = dict(data)
        if task is not None:
            fields["task"] = task
        return RawEvent(
            id=make_event_id(signature, event_name),
            signature=signature,
            slot=slot if slot is not None else block_time,
            block_time=block_time,
            event_name=event_name,
            data=fields,
            task_address=task,
        )

    return _make
