"""
任务取消标记

进程内的 task_id -> asyncio.Event 注册表；运行器启动时挂载，结束时摘除。
没有挂载运行器的任务由服务层直接完成取消。
"""
import asyncio
from threading import Lock
from typing import Dict, List


class CancelRegistry:
    """运行中任务的取消标记表"""

    def __init__(self):
        self._events: Dict[str, asyncio.Event] = {}
        self._lock = Lock()

    def attach(self, task_id: str) -> asyncio.Event:
        """运行器开始处理任务时挂载取消标记"""
        with self._lock:
            event = self._events.get(task_id)
            if event is None:
                event = asyncio.Event()
                self._events[task_id] = event
            return event

    def detach(self, task_id: str) -> None:
        with self._lock:
            self._events.pop(task_id, None)

    def is_attached(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._events

    def request_cancel(self, task_id: str) -> bool:
        """设置取消标记，任务没有运行器时返回 False"""
        with self._lock:
            event = self._events.get(task_id)
        if event is None:
            return False
        event.set()
        return True

    def running_task_ids(self) -> List[str]:
        with self._lock:
            return list(self._events)

    def cancel_all(self) -> List[str]:
        """进程退出前为所有运行中的任务设置取消标记"""
        with self._lock:
            events = dict(self._events)
        for event in events.values():
            event.set()
        return list(events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


cancel_registry = CancelRegistry()
