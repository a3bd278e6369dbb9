"""
安全外壳 - scp 文件传输与 ssh 远程命令

职责：
- 调用 scp/ssh 可执行文件（不经 shell 拼接）
- 处理超时和错误
- 区分鉴权失败/连接失败/命令非零退出

测试要点：
- test_copy_file_success: 传输成功返回远程路径
- test_copy_file_auth_failure: 255 + Permission denied
- test_run_command_nonzero_exit: 远程命令退出码透传
- test_run_command_timeout: 超时视为连接失败
"""

from __future__ import annotations

import logging
import posixpath
import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import get_config
from ..interfaces import IRemoteShell, RemoteExecutionFailure, ShiplineError, UploadFailure
from ..models import RemoteResult

if TYPE_CHECKING:
    from ..models import Credential, TargetHost

logger = logging.getLogger(__name__)

# ssh/scp 自身错误（连接、鉴权）统一使用 255
SSH_ERROR_EXIT = 255
AUTH_MARKERS = ("Permission denied", "Host key verification failed", "Too many authentication failures")


class SecureShell(IRemoteShell):
    """scp/ssh 封装"""

    def __init__(
        self,
        ssh: str | None = None,
        scp: str | None = None,
        transfer_timeout: int | None = None,
        command_timeout: int | None = None,
    ):
        config = get_config()
        self.ssh = ssh or config.toolchain.ssh
        self.scp = scp or config.toolchain.scp
        self.transfer_timeout = transfer_timeout or config.timeouts.transfer_sec
        self.command_timeout = command_timeout or config.timeouts.remote_command_sec
        self.connect_timeout = config.timeouts.connect_sec

    def _options(self, credential: Credential) -> list[str]:
        return [
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
            "-i",
            credential.secret,
        ]

    def copy_file(
        self, local_path: Path, host: TargetHost, remote_dir: str, credential: Credential
    ) -> str:
        """scp 拷贝文件"""
        if not local_path.is_file():
            raise UploadFailure("transfer failure", f"本地文件不存在: {local_path}")

        remote_path = posixpath.join(remote_dir, local_path.name)
        cmd = [
            self.scp,
            *self._options(credential),
            "-P",
            str(host.port),
            str(local_path),
            f"{host.destination}:{remote_path}",
        ]
        proc = self._run(cmd, self.transfer_timeout, UploadFailure, "transfer")
        if proc.returncode != 0:
            raise self._classify(proc, UploadFailure, "transfer")

        logger.info(f"已传输: {local_path.name} -> {host.name}:{remote_path}")
        return remote_path

    def run_command(self, host: TargetHost, command: str, credential: Credential) -> RemoteResult:
        """ssh 执行远程命令"""
        cmd = [
            self.ssh,
            *self._options(credential),
            "-p",
            str(host.port),
            host.destination,
            command,
        ]
        start = time.perf_counter()
        proc = self._run(cmd, self.command_timeout, RemoteExecutionFailure, "remote")
        duration = time.perf_counter() - start

        if proc.returncode != 0:
            raise self._classify(proc, RemoteExecutionFailure, "remote")

        return RemoteResult(
            host=host.name,
            command=command,
            exit_code=proc.returncode,
            output=proc.stdout or "",
            duration=duration,
        )

    def _run(
        self,
        cmd: list[str],
        timeout: int,
        error_cls: type[ShiplineError],
        prefix: str,
    ) -> subprocess.CompletedProcess:
        logger.debug(f"执行: {cmd[0]} ... {cmd[-1]}")
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise error_cls(f"{prefix} failure", f"可执行文件不存在: {cmd[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"{prefix} connection failure", f"超时({timeout}s)") from e

    @staticmethod
    def _classify(
        proc: subprocess.CompletedProcess, error_cls: type[ShiplineError], prefix: str
    ) -> ShiplineError:
        stderr = (proc.stderr or "").strip()
        if proc.returncode == SSH_ERROR_EXIT:
            if any(marker in stderr for marker in AUTH_MARKERS):
                reason = f"{prefix} auth failure"
            else:
                reason = f"{prefix} connection failure"
        elif prefix == "remote":
            reason = f"remote command exited with code {proc.returncode}"
        else:
            reason = f"{prefix} failed with exit code {proc.returncode}"

        if error_cls is RemoteExecutionFailure:
            return RemoteExecutionFailure(reason, stderr, exit_code=proc.returncode)
        return error_cls(reason, stderr)
