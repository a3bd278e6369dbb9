"""
运行调度器 - 按推送事件并发启动流水线运行

每次运行独立的执行器与制品句柄；同一目标上的上传/部署由目标锁串行化。
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from ..config import get_config
from .executor import PipelineExecutor
from .run_config import RunConfig
from .run_manager import RunManager

if TYPE_CHECKING:
    from ..config import PipelineDefinition
    from ..models import Outcome, PushEvent

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[RunConfig], PipelineExecutor]


class PipelineDispatcher:
    """运行调度器"""

    def __init__(
        self,
        definition: PipelineDefinition,
        *,
        run_manager: RunManager | None = None,
        executor_factory: ExecutorFactory | None = None,
        max_runs: int | None = None,
    ):
        self.definition = definition
        self.run_manager = run_manager or RunManager()
        self._executor_factory = executor_factory or self._default_executor
        self._pool = ThreadPoolExecutor(
            max_workers=max_runs or get_config().concurrency.max_runs,
            thread_name_prefix="shipline-run",
        )

    def _default_executor(self, run_config: RunConfig) -> PipelineExecutor:
        return PipelineExecutor(run_config, run_manager=self.run_manager)

    def submit(self, event: PushEvent) -> Future[Outcome]:
        """
        提交一次运行

        Raises:
            ConfigError: 定义无法合成运行配置（此时不创建运行记录）
        """
        run_config = RunConfig.from_definition(self.definition, event, Path())
        run = self.run_manager.create_run_for(event)
        workspace = self.run_manager.get_run_dir(run.run_id) / "workspace"
        run_config = run_config.model_copy(update={"workspace": workspace})
        executor = self._executor_factory(run_config)

        logger.info(f"[{run.run_id}] 已调度: branch={run_config.branch}")
        return self._pool.submit(executor.execute, run)

    def run_sync(self, event: PushEvent) -> Outcome:
        """提交并等待结果"""
        return self.submit(event).result()

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> PipelineDispatcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)
