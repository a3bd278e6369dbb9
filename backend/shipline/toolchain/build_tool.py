"""
构建工具 - git 拉取与 Maven 构建

职责：
- 调用 git 拉取指定分支
- 调用 Maven 执行 compile/test/package
- 处理超时和错误（非零退出码 → BuildFailure）

依赖：
- git / mvn 可执行文件（路径由运行期配置指定）

测试要点：
- test_checkout_success: 正常拉取
- test_goal_nonzero_exit: 非零退出码
- test_goal_timeout: 超时处理
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from ..config import get_config
from ..interfaces import BuildFailure, IBuildTool

logger = logging.getLogger(__name__)

# stderr 仅保留尾部，避免日志过长
_DETAIL_TAIL = 2000


class MavenBuildTool(IBuildTool):
    """git + Maven 封装"""

    def __init__(
        self,
        maven: str | None = None,
        git: str | None = None,
        timeout: int | None = None,
        checkout_timeout: int | None = None,
    ):
        config = get_config()
        self.maven = maven or config.toolchain.maven
        self.maven_args = list(config.toolchain.maven_args)
        self.git = git or config.toolchain.git
        self.timeout = timeout or config.timeouts.build_sec
        self.checkout_timeout = checkout_timeout or config.timeouts.checkout_sec

    def checkout(self, repo_url: str, branch: str, workspace: Path) -> Path:
        """拉取分支到 workspace/source"""
        source_dir = workspace / "source"
        if source_dir.exists():
            shutil.rmtree(source_dir)
        workspace.mkdir(parents=True, exist_ok=True)

        cmd = [
            self.git,
            "clone",
            "--branch",
            branch,
            "--depth",
            "1",
            repo_url,
            str(source_dir),
        ]
        self._run(cmd, reason="checkout failure", timeout=self.checkout_timeout, cwd=workspace)
        return source_dir

    def run_goal(self, goal: str, source_dir: Path) -> None:
        """执行 Maven 目标"""
        if not source_dir.exists():
            raise BuildFailure(f"{goal} failure", f"源码目录不存在: {source_dir}")

        cmd = [self.maven, *self.maven_args, goal]
        self._run(cmd, reason=f"{goal} failure", timeout=self.timeout, cwd=source_dir)

    def _run(self, cmd: list[str], *, reason: str, timeout: int, cwd: Path) -> None:
        logger.info(f"执行: {' '.join(cmd)}")
        try:
            subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True,
                cwd=str(cwd),
            )
        except FileNotFoundError as e:
            raise BuildFailure(reason, f"可执行文件不存在: {cmd[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise BuildFailure(reason, f"超时({timeout}s)") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "")[-_DETAIL_TAIL:]
            raise BuildFailure(reason, f"exit code {e.returncode}: {detail}") from e
