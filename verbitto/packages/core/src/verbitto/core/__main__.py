"""CLI 入口模块 -- python -m verbitto.core <command>

支持的命令：
  rebuild-history  从 raw_events 表重建 historical_tasks 表
  stats            打印索引器统计
"""

import asyncio
import sys

from .config import get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m verbitto.core <command>")
        print("命令:")
        print("  rebuild-history  从 raw_events 表重建 historical_tasks 表")
        print("  stats            打印索引器统计")
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-history":
        asyncio.run(rebuild_history())
    elif command == "stats":
        asyncio.run(print_stats())
    else:
        print(f"未知命令: {command}")
        print("可用命令: rebuild-history, stats")
        sys.exit(1)


async def rebuild_history() -> None:
    """执行历史任务重建"""
    from .projection import rebuild_historical_tasks
    from .store import create_store_group

    db_path = get_db_path()

    print(f"数据库路径: {db_path}")
    print("开始重建历史任务...")

    store_group = await create_store_group(db_path)

    try:
        task_count = await rebuild_historical_tasks(store_group)
        print(f"重建完成，写入 {task_count} 个历史任务")
    finally:
        await store_group.conn.close()


async def print_stats() -> None:
    """打印索引器统计（JSON）"""
    from .stats import get_indexer_stats
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())

    try:
        stats = await get_indexer_stats(store_group)
        print(stats.model_dump_json(indent=2))
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
