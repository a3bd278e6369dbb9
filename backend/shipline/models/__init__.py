"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- PipelineRun: 运行状态与生命周期
- Artifact: 制品身份与位置记录
- PushEvent: 触发事件
- TargetHost/RemoteResult/Credential: 远程执行
"""

from .artifact import Artifact, ArtifactId, ArtifactLocation, LocationKind
from .remote import Credential, CredentialKind, RemoteResult, TargetHost
from .run import Outcome, PipelineRun, RunProgress, RunStatus
from .trigger import PushEvent

__all__ = [
    "PipelineRun",
    "RunStatus",
    "RunProgress",
    "Outcome",
    "Artifact",
    "ArtifactId",
    "ArtifactLocation",
    "LocationKind",
    "PushEvent",
    "TargetHost",
    "RemoteResult",
    "Credential",
    "CredentialKind",
]
