"""
流水线阶段定义

职责：
1. 定义各阶段的名称和执行逻辑
2. 提供进度区间
3. 标注需要独占远程目标的阶段（lock_target）

阶段失败以 ShiplineError 子类抛出，由执行器终止后续阶段。

测试要点：
- test_default_stage_order: 阶段顺序
- test_stage_lock_target: 上传/部署阶段共享目标锁
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..interfaces import IBuildTool
    from ..models import PipelineRun, RemoteResult
    from ..remote import RemoteExecutor
    from .packager import Packager
    from .run_config import RunConfig


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    CHECKOUT = "CHECKOUT"
    COMPILE = "COMPILE"
    TEST = "TEST"
    PACKAGE = "PACKAGE"
    UPLOAD_OBJECT_STORE = "UPLOAD_OBJECT_STORE"
    UPLOAD_TARGET = "UPLOAD_TARGET"
    RUN_DEPLOY = "RUN_DEPLOY"


@dataclass
class StageContext:
    """阶段间共享的运行上下文"""
    config: RunConfig
    run: PipelineRun
    build_tool: IBuildTool
    remote: RemoteExecutor
    packager: Packager
    source_dir: Path | None = None
    deploy_result: RemoteResult | None = None

    def require_source(self) -> Path:
        if self.source_dir is None:
            raise RuntimeError("源码目录未就绪（CHECKOUT 未执行）")
        return self.source_dir

    def require_artifact(self):
        if self.run.artifact is None:
            raise RuntimeError("制品未就绪（PACKAGE 未执行）")
        return self.run.artifact


@dataclass
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点
    handler: Callable[[StageContext], None] | None = None  # 执行函数
    lock_target: str | None = None  # 需独占的远程目标

    def execute(self, ctx: StageContext) -> None:
        """执行阶段"""
        if self.handler:
            self.handler(ctx)


# ============================================================================
# 阶段实现
# ============================================================================

def stage_checkout(ctx: StageContext) -> None:
    """拉取代码"""
    ctx.source_dir = ctx.build_tool.checkout(
        ctx.config.repo_url, ctx.config.branch, ctx.config.workspace
    )


def goal_stage(goal: str) -> Callable[[StageContext], None]:
    """执行单个构建目标的阶段"""

    def _handler(ctx: StageContext) -> None:
        ctx.build_tool.run_goal(goal, ctx.require_source())

    _handler.__name__ = f"stage_{goal}"
    return _handler


def stage_package(ctx: StageContext) -> None:
    """打包并捕获制品"""
    source_dir = ctx.require_source()
    ctx.build_tool.run_goal("package", source_dir)
    ctx.run.artifact = ctx.packager.package(source_dir)


def stage_upload_object_store(ctx: StageContext) -> None:
    """上传制品到对象存储（备份）"""
    artifact = ctx.require_artifact()
    cfg = ctx.config
    location = ctx.remote.upload_to_object_store(
        artifact,
        cfg.bucket,
        cfg.region,
        key=cfg.object_key_for(artifact.local_path.relative_to(ctx.require_source()).as_posix()),
        storage_class=cfg.storage_class,
        credential_ref=cfg.object_store_credential,
    )
    ctx.packager.record_location(artifact, location)


def stage_upload_target(ctx: StageContext) -> None:
    """传输制品到部署主机"""
    artifact = ctx.require_artifact()
    cfg = ctx.config
    location = ctx.remote.copy_to_host(
        artifact, cfg.deploy_target, cfg.ssh_credential, remote_dir=cfg.remote_dir
    )
    ctx.packager.record_location(artifact, location)


def stage_run_deploy(ctx: StageContext) -> None:
    """在部署主机执行部署命令"""
    cfg = ctx.config
    ctx.deploy_result = ctx.remote.execute_remote(
        cfg.deploy_target, cfg.deploy_command, cfg.ssh_credential
    )


def build_default_stages(config: RunConfig) -> list[PipelineStage]:
    """按运行配置生成默认阶段序列"""
    target = config.deploy_target.name
    stages = [PipelineStage(StageEnum.CHECKOUT.value, 0, 10, stage_checkout)]

    # 打包前的构建目标平分 10-50 区间
    goals = [g for g in config.goals if g != "package"]
    span = 40 // max(len(goals), 1)
    for i, goal in enumerate(goals):
        start = 10 + i * span
        stages.append(PipelineStage(goal.upper(), start, start + span, goal_stage(goal)))

    stages += [
        PipelineStage(StageEnum.PACKAGE.value, 50, 60, stage_package),
        PipelineStage(StageEnum.UPLOAD_OBJECT_STORE.value, 60, 75, stage_upload_object_store, target),
        PipelineStage(StageEnum.UPLOAD_TARGET.value, 75, 85, stage_upload_target, target),
        PipelineStage(StageEnum.RUN_DEPLOY.value, 85, 100, stage_run_deploy, target),
    ]
    return stages
