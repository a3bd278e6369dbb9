"""
流水线定义加载器 - 读取 config/pipeline.yaml

职责：
- 解析YAML并提供类型安全访问
- 提供代码源、构建目标、制品、对象存储、目标注册表、部署与通知配置
- 缓存加载结果（避免重复解析）

使用方式：
    definition = DefinitionLoader.load("config/pipeline.yaml")
    host = definition.resolve_target("ansible")
    text = definition.notify.render(outcome)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from ..interfaces import ConfigError
from ..models import Outcome, TargetHost


class SourceSection(BaseModel):
    """代码源"""
    repo_url: str
    default_branch: str = "main"


class BuildSection(BaseModel):
    """构建配置"""
    goals: list[str] = Field(default_factory=lambda: ["compile", "test"], description="打包前执行的目标")
    artifact_path: str = Field(..., description="相对源码目录的制品路径")
    artifact_name: str | None = None
    artifact_version: str | None = None


class ObjectStoreSection(BaseModel):
    """对象存储（备份）"""
    bucket: str
    region: str = "us-east-1"
    storage_class: str = "STANDARD"
    key_prefix: str = ""
    credential: str | None = None


class TargetSection(BaseModel):
    """目标主机声明"""
    address: str
    user: str = "root"
    port: int = 22
    artifact_dir: str = "/root/artifact"


class DeploySection(BaseModel):
    """部署配置"""
    target: str
    command: str
    credential: str


class NotifySection(BaseModel):
    """通知配置"""
    channel: str
    webhook_credential: str
    success_template: str = "✅ Build and deployment of {name} {version} was successful."
    failure_template: str = "❌ Build or deployment of {name} {version} failed."
    success_color: str = "good"
    failure_color: str = "danger"

    def render(self, outcome: Outcome) -> str:
        """按结果渲染模板文本"""
        template = self.success_template if outcome.succeeded else self.failure_template
        return template.format(
            name=outcome.artifact_name or "",
            version=outcome.artifact_version or "",
            reason=outcome.reason or "",
            stage=outcome.failed_stage or "",
        )

    def color_for(self, outcome: Outcome) -> str:
        return self.success_color if outcome.succeeded else self.failure_color


class PipelineDefinition(BaseModel):
    """流水线定义（pipeline.yaml 的结构化表示）"""
    schema_version: str = "1.0"
    name: str = "shipline"

    source: SourceSection
    build: BuildSection
    object_store: ObjectStoreSection
    targets: dict[str, TargetSection] = Field(default_factory=dict)
    deploy: DeploySection
    notify: NotifySection

    # === 便捷访问方法 ===

    def resolve_target(self, name: str) -> TargetHost:
        """按名称解析目标主机"""
        target = self.targets.get(name)
        if target is None:
            raise ConfigError("unknown target", name)
        return TargetHost(name=name, **target.model_dump())

    def get_target_names(self) -> list[str]:
        return list(self.targets)


class DefinitionLoader:
    """定义加载器（缓存）"""

    @classmethod
    @lru_cache(maxsize=4)
    def load(cls, definition_path: str | Path = "config/pipeline.yaml") -> PipelineDefinition:
        """加载并缓存流水线定义"""
        path = Path(definition_path)
        if not path.exists():
            raise FileNotFoundError(f"流水线定义不存在: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        definition = PipelineDefinition(**data)
        if definition.deploy.target not in definition.targets:
            raise ConfigError("unknown target", definition.deploy.target)
        return definition

    @classmethod
    def reload(cls, definition_path: str | Path = "config/pipeline.yaml") -> PipelineDefinition:
        """强制重新加载（清除缓存）"""
        cls.load.cache_clear()
        return cls.load(definition_path)


# 便捷函数
def load_definition(definition_path: str | Path = "config/pipeline.yaml") -> PipelineDefinition:
    """加载流水线定义"""
    return DefinitionLoader.load(definition_path)
