"""
运行模型 - 定义一次流水线运行的状态与生命周期

状态机：PENDING → RUNNING → {SUCCEEDED, FAILED}
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from ..interfaces import InvalidTransition
from .artifact import Artifact
from .trigger import PushEvent


class RunStatus(str, Enum):
    """运行状态枚举"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Outcome(BaseModel):
    """运行最终结果"""
    succeeded: bool
    reason: str | None = None
    failed_stage: str | None = None

    # 通知模板所需
    artifact_name: str | None = None
    artifact_version: str | None = None

    @classmethod
    def success(cls, artifact: Artifact | None = None) -> Outcome:
        return cls(
            succeeded=True,
            artifact_name=artifact.name if artifact else None,
            artifact_version=artifact.version if artifact else None,
        )

    @classmethod
    def failure(
        cls, reason: str, stage: str | None = None, artifact: Artifact | None = None
    ) -> Outcome:
        return cls(
            succeeded=False,
            reason=reason,
            failed_stage=stage,
            artifact_name=artifact.name if artifact else None,
            artifact_version=artifact.version if artifact else None,
        )


class RunProgress(BaseModel):
    """运行进度"""
    stage: str = "INIT"
    percent: int = 0
    message: str = ""
    completed_stages: list[str] = Field(default_factory=list)


class PipelineRun(BaseModel):
    """流水线运行实体"""
    run_id: str = Field(..., description="UUID")
    trigger: PushEvent

    # 状态
    status: RunStatus = RunStatus.PENDING
    progress: RunProgress = Field(default_factory=RunProgress)
    outcome: Outcome | None = None

    # 产物
    artifact: Artifact | None = None

    # 结果
    errors: list[str] = Field(default_factory=list, description="错误信息")
    notification_error: str | None = None

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    # 工作目录（运行时设置）
    work_dir: Path | None = None

    model_config = {"arbitrary_types_allowed": True}

    @property
    def is_terminal(self) -> bool:
        return self.status in (RunStatus.SUCCEEDED, RunStatus.FAILED)

    def mark_running(self, stage: str = "CHECKOUT") -> None:
        """标记为运行中"""
        if self.status != RunStatus.PENDING:
            raise InvalidTransition("invalid transition", f"{self.status.value} -> running")
        self.status = RunStatus.RUNNING
        self.started_at = datetime.now()
        self.progress.stage = stage

    def mark_succeeded(self) -> Outcome:
        """标记为成功"""
        if self.status != RunStatus.RUNNING:
            raise InvalidTransition("invalid transition", f"{self.status.value} -> succeeded")
        self.status = RunStatus.SUCCEEDED
        self.finished_at = datetime.now()
        self.progress.percent = 100
        self.outcome = Outcome.success(self.artifact)
        return self.outcome

    def mark_failed(self, reason: str, stage: str | None = None) -> Outcome:
        """标记为失败"""
        if self.status != RunStatus.RUNNING:
            raise InvalidTransition("invalid transition", f"{self.status.value} -> failed")
        self.status = RunStatus.FAILED
        self.finished_at = datetime.now()
        self.errors.append(reason)
        self.outcome = Outcome.failure(reason, stage, self.artifact)
        return self.outcome
