"""
远程执行相关模型 - 目标主机/命令结果/凭据
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, PrivateAttr


class TargetHost(BaseModel):
    """部署目标主机（由目标注册表解析）"""
    name: str
    address: str
    user: str = "root"
    port: int = 22
    artifact_dir: str = "/root/artifact"

    model_config = {"frozen": True}

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.address}"


class RemoteResult(BaseModel):
    """远程命令执行结果"""
    host: str
    command: str
    exit_code: int
    output: str = ""
    duration: float = 0.0


class CredentialKind(str, Enum):
    """凭据类型"""
    SSH_KEY = "ssh_key"
    TOKEN = "token"
    AWS_PROFILE = "aws_profile"


class Credential(BaseModel):
    """
    单次调用范围内的凭据

    secret 仅在 CredentialStore.acquire() 上下文内有效，退出后被清除
    """
    ref: str
    kind: CredentialKind
    _secret: str | None = PrivateAttr(default=None)

    def __init__(self, secret: str | None = None, **data):
        super().__init__(**data)
        self._secret = secret

    @property
    def secret(self) -> str:
        if self._secret is None:
            raise RuntimeError(f"凭据已释放: {self.ref}")
        return self._secret

    @property
    def released(self) -> bool:
        return self._secret is None

    def release(self) -> None:
        self._secret = None

    def __repr__(self) -> str:
        return f"Credential(ref={self.ref!r}, kind={self.kind.value!r})"

    __str__ = __repr__
