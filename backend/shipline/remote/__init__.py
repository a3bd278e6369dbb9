"""
远程执行模块 - 对象存储/安全外壳/凭据/目标锁

子模块：
- object_store: S3 制品备份
- secure_shell: scp 传输与 ssh 远程命令
- credentials: 单次调用范围的凭据解析
- locks: 按目标互斥
- executor: 远程执行器（统一入口）
"""

from .credentials import CredentialStore
from .executor import RemoteExecutor
from .locks import TargetLockRegistry, target_locks
from .object_store import S3ObjectStore
from .secure_shell import SecureShell

__all__ = [
    "CredentialStore",
    "RemoteExecutor",
    "TargetLockRegistry",
    "target_locks",
    "S3ObjectStore",
    "SecureShell",
]
