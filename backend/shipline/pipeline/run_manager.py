"""
运行管理器 - 运行记录创建/查询/更新

职责：
1. 创建运行并分配ID
2. 运行状态持久化（run.json）
3. 运行查询

测试要点：
- test_create_run: 创建运行
- test_get_run_from_disk: 从磁盘加载
- test_list_runs_by_status: 按状态列出
- test_terminal_run_evicted: 终态运行移出内存
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any

from ..config import get_config
from ..interfaces import IRunManager
from ..models import PipelineRun, PushEvent, RunStatus

logger = logging.getLogger(__name__)


class RunManager(IRunManager):
    """运行管理器实现"""

    def __init__(self, storage_dir: Path | None = None):
        self.storage_dir = storage_dir or get_config().storage_dir
        self._runs: dict[str, PipelineRun] = {}  # 仅缓存未结束的运行
        self._lock = threading.Lock()

    def get_run_dir(self, run_id: str) -> Path:
        return self.storage_dir / "runs" / run_id

    def create_run(self, branch: str, repo_url: str, **kwargs: Any) -> PipelineRun:
        """创建运行"""
        return self.create_run_for(PushEvent(branch=branch, repo_url=repo_url, **kwargs))

    def create_run_for(self, event: PushEvent) -> PipelineRun:
        """按触发事件创建运行"""
        run = PipelineRun(run_id=str(uuid.uuid4()), trigger=event)

        with self._lock:
            self._runs[run.run_id] = run
        self._persist_run(run)

        logger.info(f"[{run.run_id}] 运行已创建: branch={event.branch}")
        return run

    def get_run(self, run_id: str) -> PipelineRun | None:
        """获取运行（终态运行从磁盘读取，不常驻内存）"""
        with self._lock:
            if run_id in self._runs:
                return self._runs[run_id]

        run = self._load_run(run_id)
        if run and not run.is_terminal:
            with self._lock:
                self._runs[run_id] = run
        return run

    def update_run(self, run: PipelineRun) -> None:
        """更新运行状态"""
        self._persist_run(run)
        with self._lock:
            if run.is_terminal:
                self._runs.pop(run.run_id, None)
            else:
                self._runs[run.run_id] = run

    def list_runs(
        self,
        status: RunStatus | None = None,
        limit: int = 100,
    ) -> list[PipelineRun]:
        """列出运行（内存中的活动运行 + 磁盘上的其余运行）"""
        with self._lock:
            runs = dict(self._runs)

        runs_root = self.storage_dir / "runs"
        if runs_root.exists():
            for run_dir in runs_root.iterdir():
                if run_dir.name in runs or not run_dir.is_dir():
                    continue
                run = self._load_run(run_dir.name)
                if run:
                    runs[run.run_id] = run

        result = list(runs.values())
        if status:
            result = [r for r in result if r.status == status]

        # 按创建时间降序
        result.sort(key=lambda r: r.created_at, reverse=True)

        return result[:limit]

    def _persist_run(self, run: PipelineRun) -> None:
        """持久化运行"""
        run_dir = self.get_run_dir(run.run_id)
        run_dir.mkdir(parents=True, exist_ok=True)

        run_file = run_dir / "run.json"
        with open(run_file, "w", encoding="utf-8") as f:
            json.dump(run.model_dump(mode="json"), f, ensure_ascii=False, indent=2, default=str)

    def _load_run(self, run_id: str) -> PipelineRun | None:
        """从磁盘加载运行"""
        run_file = self.get_run_dir(run_id) / "run.json"

        if not run_file.exists():
            return None

        try:
            with open(run_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return PipelineRun(**data)
        except (OSError, ValueError) as e:
            logger.warning(f"运行记录无法读取: {run_file}: {e}")
            return None
