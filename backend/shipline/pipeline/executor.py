"""
流水线执行器 - 按声明顺序编排各阶段

职责：
1. 严格按顺序执行各阶段，首个失败即终止
2. 更新并持久化运行进度
3. 对共享同一目标的连续阶段持有目标锁
4. 无论成功失败，恰好发送一次最终通知

测试要点：
- test_all_stages_succeed: 完整流水线执行
- test_failure_halts_later_stages: 阶段失败处理
- test_notification_exactly_once: 恰好一次通知
- test_notification_failure_keeps_outcome: 通知失败不改变结果
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from itertools import groupby
from typing import TYPE_CHECKING

from ..interfaces import IBuildTool, INotifier, ShiplineError
from ..notify import SlackNotifier
from ..remote import RemoteExecutor, TargetLockRegistry, target_locks
from ..toolchain import MavenBuildTool
from .packager import Packager
from .run_manager import RunManager
from .stages import PipelineStage, StageContext, build_default_stages

if TYPE_CHECKING:
    from ..models import Outcome, PipelineRun
    from .run_config import RunConfig

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """流水线执行器"""

    def __init__(
        self,
        run_config: RunConfig,
        *,
        stages: list[PipelineStage] | None = None,
        build_tool: IBuildTool | None = None,
        remote: RemoteExecutor | None = None,
        packager: Packager | None = None,
        notifier: INotifier | None = None,
        locks: TargetLockRegistry | None = None,
        run_manager: RunManager | None = None,
    ):
        self.config = run_config
        self.stages = stages if stages is not None else build_default_stages(run_config)
        self.build_tool = build_tool or MavenBuildTool()
        self.remote = remote or RemoteExecutor()
        self.packager = packager or Packager(
            run_config.artifact_path, run_config.artifact_name, run_config.artifact_version
        )
        self.notifier = notifier or SlackNotifier(run_config.notify)
        self.locks = locks or target_locks
        self.run_manager = run_manager or RunManager()

    def execute(self, run: PipelineRun) -> Outcome:
        """执行流水线，返回最终结果"""
        first = self.stages[0].name if self.stages else "INIT"
        run.mark_running(first)

        ctx = StageContext(
            config=self.config,
            run=run,
            build_tool=self.build_tool,
            remote=self.remote,
            packager=self.packager,
        )

        try:
            run.work_dir = self.run_manager.get_run_dir(run.run_id)
            run.work_dir.mkdir(parents=True, exist_ok=True)
            self._update_progress(run, message="运行开始")

            for target, group in groupby(self.stages, key=lambda s: s.lock_target):
                with self.locks.hold(target) if target else nullcontext():
                    for stage in group:
                        self._execute_stage(run, stage, ctx)
            outcome = run.mark_succeeded()
            logger.info(f"[{run.run_id}] 运行成功")

        except ShiplineError as e:
            logger.error(f"[{run.run_id}] 运行失败 {run.progress.stage}: {e}")
            outcome = run.mark_failed(e.reason, stage=run.progress.stage)

        except Exception as e:
            logger.exception(f"[{run.run_id}] 阶段异常: {run.progress.stage}")
            outcome = run.mark_failed(f"{run.progress.stage} error: {e}", stage=run.progress.stage)

        # 失败发生在打包前时，模板使用运行配置中的名称与版本
        if outcome.artifact_name is None:
            outcome.artifact_name = self.config.artifact_name
            outcome.artifact_version = self.config.artifact_version

        # 记录写入失败只登记在运行上，不影响结果与通知
        if run.artifact is not None:
            try:
                self.packager.generate_manifest(run)
            except (OSError, ValueError) as e:
                logger.error(f"[{run.run_id}] 制品记录写入失败: {e}")
                run.errors.append(f"artifact record error: {e}")

        self._notify(run, outcome)

        try:
            self._update_progress(run, message="运行成功" if outcome.succeeded else f"运行失败: {outcome.reason}")
        except OSError as e:
            logger.error(f"[{run.run_id}] 运行记录写入失败: {e}")
            run.errors.append(f"run record error: {e}")
        return outcome

    def _execute_stage(self, run: PipelineRun, stage: PipelineStage, ctx: StageContext) -> None:
        """执行单个阶段"""
        run.progress.stage = stage.name
        run.progress.percent = stage.progress_start
        logger.info(f"[{run.run_id}] 开始阶段: {stage.name}")
        self._update_progress(run, message=f"开始阶段: {stage.name}")

        stage.execute(ctx)

        run.progress.percent = stage.progress_end
        run.progress.completed_stages.append(stage.name)
        self._update_progress(run, message=f"完成阶段: {stage.name}")

    def _notify(self, run: PipelineRun, outcome: Outcome) -> None:
        """发送最终通知（失败仅记录）"""
        try:
            self.notifier.notify(outcome, self.config.channel)
        except ShiplineError as e:
            logger.error(f"[{run.run_id}] 通知失败: {e}")
            run.notification_error = str(e)
        except Exception as e:
            logger.exception(f"[{run.run_id}] 通知异常")
            run.notification_error = f"notification error: {e}"

    def _update_progress(self, run: PipelineRun, *, message: str | None = None) -> None:
        if message is not None:
            run.progress.message = message
        self.run_manager.update_run(run)
