"""
任务进度内存缓存模块

记录每个运行中任务里各简历当前所处的流水线阶段，避免频繁写入数据库。
前端通过轮询 /progress API 获取进度。
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class ResumeStage:
    """单份简历的实时阶段"""
    resume_id: str
    stage: str
    node_key: str = ""
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "resume_id": self.resume_id,
            "stage": self.stage,
            "node_key": self.node_key,
            "updated_at": self.updated_at.isoformat(),
        }


class ProgressCache:
    """
    线程安全的进度缓存

    task_id -> {resume_id: ResumeStage}，简历处理结束或任务结束后清理。
    """

    def __init__(self):
        self._cache: Dict[str, Dict[str, ResumeStage]] = {}
        self._lock = Lock()

    def update(
        self,
        task_id: str,
        resume_id: str,
        stage: str,
        node_key: Optional[str] = None,
    ) -> None:
        """更新简历所处阶段"""
        with self._lock:
            stages = self._cache.setdefault(task_id, {})
            entry = stages.get(resume_id)
            if entry is None:
                stages[resume_id] = ResumeStage(resume_id=resume_id, stage=stage, node_key=node_key or "")
                return
            entry.stage = stage
            if node_key is not None:
                entry.node_key = node_key
            entry.updated_at = datetime.now(timezone.utc)

    def finish(self, task_id: str, resume_id: str) -> None:
        """简历到达终态后移除"""
        with self._lock:
            stages = self._cache.get(task_id)
            if stages is not None:
                stages.pop(resume_id, None)

    def get(self, task_id: str) -> List[ResumeStage]:
        """获取任务内所有运行中简历的阶段快照"""
        with self._lock:
            return list(self._cache.get(task_id, {}).values())

    def remove(self, task_id: str) -> None:
        """移除任务进度（任务结束后调用）"""
        with self._lock:
            self._cache.pop(task_id, None)

    def clear(self) -> None:
        """清空所有缓存"""
        with self._lock:
            self._cache.clear()


# 全局单例
progress_cache = ProgressCache()
