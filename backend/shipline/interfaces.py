"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和fake替换

使用方式：
    from shipline.interfaces import IObjectStore

    class MyObjectStore(IObjectStore):
        def put_artifact(self, artifact, bucket, region, **kwargs) -> ArtifactLocation:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import (
        Artifact,
        ArtifactLocation,
        Credential,
        Outcome,
        PipelineRun,
        RemoteResult,
        TargetHost,
    )
    from .pipeline.stages import StageContext


# ============================================================================
# 构建工具链接口
# ============================================================================

class IBuildTool(ABC):
    """构建工具接口 - 拉取代码/编译/测试/打包"""

    @abstractmethod
    def checkout(self, repo_url: str, branch: str, workspace: Path) -> Path:
        """
        拉取指定分支代码到工作目录

        Returns:
            源码目录

        Raises:
            BuildFailure: 拉取失败（reason="checkout failure"）
        """
        ...

    @abstractmethod
    def run_goal(self, goal: str, source_dir: Path) -> None:
        """
        执行构建目标（compile/test/package）

        Raises:
            BuildFailure: 非零退出码或超时（reason="<goal> failure"）
        """
        ...


# ============================================================================
# 远程执行接口
# ============================================================================

class IObjectStore(ABC):
    """对象存储接口 - 制品备份"""

    @abstractmethod
    def put_artifact(
        self,
        artifact: Artifact,
        bucket: str,
        region: str,
        *,
        key: str | None = None,
        credential: Credential | None = None,
        storage_class: str = "STANDARD",
    ) -> ArtifactLocation:
        """
        上传制品文件

        Returns:
            对象存储位置（s3://bucket/key）

        Raises:
            UploadFailure: 鉴权/连接/非2xx响应
        """
        ...


class IRemoteShell(ABC):
    """安全外壳接口 - 文件传输与远程命令"""

    @abstractmethod
    def copy_file(
        self, local_path: Path, host: TargetHost, remote_dir: str, credential: Credential
    ) -> str:
        """
        拷贝本地文件到远程主机

        Returns:
            远程文件路径

        Raises:
            UploadFailure: 鉴权/连接/非零退出码
        """
        ...

    @abstractmethod
    def run_command(self, host: TargetHost, command: str, credential: Credential) -> RemoteResult:
        """
        在远程主机执行单条命令

        Raises:
            RemoteExecutionFailure: 鉴权/连接/非零退出码
        """
        ...


class INotifier(ABC):
    """通知器接口"""

    @abstractmethod
    def notify(self, outcome: Outcome, channel: str) -> None:
        """
        发送流水线最终结果

        Raises:
            NotificationFailure: 发送失败（由调用方记录，不改变结果）
        """
        ...


# ============================================================================
# 流水线与运行管理接口
# ============================================================================

class IPipelineStage(Protocol):
    """流水线阶段协议"""

    name: str

    def execute(self, ctx: StageContext) -> None:
        """执行阶段"""
        ...


class IRunManager(ABC):
    """运行记录管理器接口"""

    @abstractmethod
    def create_run(self, branch: str, repo_url: str, **kwargs: Any) -> PipelineRun:
        """创建运行记录"""
        ...

    @abstractmethod
    def get_run(self, run_id: str) -> PipelineRun | None:
        """获取运行记录"""
        ...

    @abstractmethod
    def update_run(self, run: PipelineRun) -> None:
        """更新运行记录"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class ShiplineError(Exception):
    """基础异常"""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class ConfigError(ShiplineError):
    """配置错误"""
    pass


class CredentialError(ShiplineError):
    """凭据解析错误"""
    pass


class BuildFailure(ShiplineError):
    """构建失败（拉取/编译/测试/打包）"""
    pass


class UploadFailure(ShiplineError):
    """上传失败（对象存储/文件传输）"""
    pass


class RemoteExecutionFailure(ShiplineError):
    """远程命令失败"""

    def __init__(self, reason: str, detail: str = "", exit_code: int | None = None):
        self.exit_code = exit_code
        super().__init__(reason, detail)


class NotificationFailure(ShiplineError):
    """通知失败（尽力而为，不影响结果）"""
    pass


class InvalidTransition(ShiplineError):
    """非法状态迁移"""
    pass
