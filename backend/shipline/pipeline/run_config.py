"""
单次运行配置 - 由流水线定义与触发事件合成，构造执行器时传入

不包含任何秘密，仅持有凭据引用名。
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field

from ..config.definition_loader import NotifySection, PipelineDefinition
from ..interfaces import ConfigError
from ..models import PushEvent, TargetHost
from .packager import parse_artifact_filename

_GLOB_CHARS = re.compile(r"[*?\[]")


class RunConfig(BaseModel):
    """单次运行配置"""

    # 代码源
    repo_url: str
    branch: str
    commit: str | None = None
    workspace: Path

    # 构建
    goals: list[str] = Field(default_factory=lambda: ["compile", "test"])
    artifact_path: str
    artifact_name: str
    artifact_version: str

    # 对象存储
    bucket: str
    region: str
    storage_class: str = "STANDARD"
    key_prefix: str = ""
    object_key: str | None = None  # 制品路径含通配符时按实际产物确定
    object_store_credential: str | None = None

    # 部署
    deploy_target: TargetHost
    remote_dir: str
    deploy_command: str
    ssh_credential: str

    # 通知
    notify: NotifySection

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def channel(self) -> str:
        return self.notify.channel

    def object_key_for(self, relative_path: str) -> str:
        """对象键：已配置则直接使用，否则由产物相对路径生成"""
        return self.object_key or _join_key(self.key_prefix, relative_path)

    @classmethod
    def from_definition(
        cls, definition: PipelineDefinition, event: PushEvent, workspace: Path
    ) -> RunConfig:
        """按定义与触发事件合成运行配置"""
        build = definition.build
        name, version = build.artifact_name, build.artifact_version
        if not (name and version):
            try:
                parsed_name, parsed_version = parse_artifact_filename(PurePosixPath(build.artifact_path).name)
            except ValueError as e:
                raise ConfigError("invalid artifact path", str(e)) from e
            name = name or parsed_name
            version = version or parsed_version

        store = definition.object_store
        object_key = None
        if not _GLOB_CHARS.search(build.artifact_path):
            object_key = _join_key(store.key_prefix, build.artifact_path)

        target = definition.resolve_target(definition.deploy.target)

        return cls(
            repo_url=event.repo_url or definition.source.repo_url,
            branch=event.branch or definition.source.default_branch,
            commit=event.commit,
            workspace=workspace,
            goals=list(build.goals),
            artifact_path=build.artifact_path,
            artifact_name=name,
            artifact_version=version,
            bucket=store.bucket,
            region=store.region,
            storage_class=store.storage_class,
            key_prefix=store.key_prefix,
            object_key=object_key,
            object_store_credential=store.credential,
            deploy_target=target,
            remote_dir=target.artifact_dir,
            deploy_command=definition.deploy.command,
            ssh_credential=definition.deploy.credential,
            notify=definition.notify,
        )


def _join_key(prefix: str, path: str) -> str:
    return posixpath.join(prefix, path) if prefix else path
