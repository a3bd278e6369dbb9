"""
远程执行器 - 对象存储上传/远程传输/远程命令的统一入口

职责：
1. 每次调用前获取凭据，调用后立即释放
2. 将凭据解析失败归入对应调用的鉴权失败
3. 返回结构化结果（ArtifactLocation / RemoteResult）

调用均为阻塞同步，不自动重试。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..interfaces import (
    CredentialError,
    IObjectStore,
    IRemoteShell,
    RemoteExecutionFailure,
    UploadFailure,
)
from ..models import ArtifactLocation, LocationKind
from .credentials import CredentialStore
from .object_store import S3ObjectStore
from .secure_shell import SecureShell

if TYPE_CHECKING:
    from ..models import Artifact, RemoteResult, TargetHost

logger = logging.getLogger(__name__)


class RemoteExecutor:
    """远程执行器"""

    def __init__(
        self,
        object_store: IObjectStore | None = None,
        shell: IRemoteShell | None = None,
        credentials: CredentialStore | None = None,
    ):
        self.object_store = object_store or S3ObjectStore()
        self.shell = shell or SecureShell()
        self.credentials = credentials or CredentialStore()

    def upload_to_object_store(
        self,
        artifact: Artifact,
        bucket: str,
        region: str,
        *,
        key: str | None = None,
        storage_class: str = "STANDARD",
        credential_ref: str | None = None,
    ) -> ArtifactLocation:
        """上传制品到对象存储"""
        logger.info(f"上传 {artifact.identity} -> s3://{bucket} ({region})")
        if credential_ref is None:
            return self.object_store.put_artifact(
                artifact, bucket, region, key=key, storage_class=storage_class
            )

        try:
            with self.credentials.acquire(credential_ref) as credential:
                return self.object_store.put_artifact(
                    artifact,
                    bucket,
                    region,
                    key=key,
                    credential=credential,
                    storage_class=storage_class,
                )
        except CredentialError as e:
            raise UploadFailure("upload auth failure", e.detail) from e

    def copy_to_host(
        self,
        artifact: Artifact,
        host: TargetHost,
        credential_ref: str,
        remote_dir: str | None = None,
    ) -> ArtifactLocation:
        """传输制品到远程主机"""
        target_dir = remote_dir or host.artifact_dir
        logger.info(f"传输 {artifact.identity} -> {host.name}:{target_dir}")
        try:
            with self.credentials.acquire(credential_ref) as credential:
                remote_path = self.shell.copy_file(artifact.local_path, host, target_dir, credential)
        except CredentialError as e:
            raise UploadFailure("transfer auth failure", e.detail) from e

        return ArtifactLocation(
            kind=LocationKind.REMOTE_HOST,
            uri=f"ssh://{host.destination}:{host.port}{remote_path}",
        )

    def execute_remote(self, host: TargetHost, command: str, credential_ref: str) -> RemoteResult:
        """在远程主机执行命令"""
        logger.info(f"远程执行 [{host.name}]: {command}")
        try:
            with self.credentials.acquire(credential_ref) as credential:
                result = self.shell.run_command(host, command, credential)
        except CredentialError as e:
            raise RemoteExecutionFailure("remote auth failure", e.detail) from e

        logger.info(f"远程命令完成 [{host.name}] exit={result.exit_code} ({result.duration:.1f}s)")
        return result
