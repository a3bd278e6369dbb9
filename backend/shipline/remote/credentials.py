"""
凭据仓库 - 按引用名解析单次调用范围内的凭据

约束：
- 凭据在调用前立即解析，调用后立即释放
- 不缓存、不写入运行状态
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..config import CredentialRef, get_config
from ..interfaces import CredentialError
from ..models import Credential, CredentialKind

logger = logging.getLogger(__name__)


class CredentialStore:
    """凭据仓库"""

    def __init__(self, refs: dict[str, CredentialRef] | None = None):
        self.refs = dict(refs) if refs is not None else dict(get_config().credentials)

    @contextmanager
    def acquire(self, ref: str) -> Iterator[Credential]:
        """解析凭据，退出上下文时释放"""
        credential = self._resolve(ref)
        logger.debug(f"凭据已获取: {ref}")
        try:
            yield credential
        finally:
            credential.release()
            logger.debug(f"凭据已释放: {ref}")

    def _resolve(self, ref: str) -> Credential:
        declared = self.refs.get(ref)
        if declared is None:
            raise CredentialError("unknown credential", ref)

        if declared.kind == CredentialKind.SSH_KEY:
            key_path = Path(declared.source).expanduser()
            if not key_path.is_file():
                raise CredentialError("credential unavailable", f"{ref}: 私钥文件不存在")
            secret = str(key_path)
        elif declared.kind == CredentialKind.TOKEN:
            secret = os.environ.get(declared.source)
            if not secret:
                raise CredentialError("credential unavailable", f"{ref}: 环境变量 {declared.source} 未设置")
        else:
            secret = declared.source

        return Credential(ref=ref, kind=declared.kind, secret=secret)
