"""
运行期配置 - 读取 config/runtime.yaml

职责：
- 加载并发/超时/存储/日志/凭据等运行参数
- 提供环境变量覆盖机制
- 类型安全的配置访问
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from ..models import CredentialKind

DEFAULT_RUNTIME_PATH = Path("config/runtime.yaml")


class ConcurrencyConfig(BaseModel):
    """并发配置"""

    max_runs: int = 4


class TimeoutConfig(BaseModel):
    """超时配置"""

    checkout_sec: int = 300
    build_sec: int = 1800
    upload_sec: int = 600
    transfer_sec: int = 600
    remote_command_sec: int = 1800
    connect_sec: int = 15
    notify_sec: int = 30


class ToolchainConfig(BaseModel):
    """外部工具路径"""

    git: str = "git"
    maven: str = "mvn"
    maven_args: list[str] = Field(default_factory=lambda: ["-B"])
    ssh: str = "ssh"
    scp: str = "scp"


class CredentialRef(BaseModel):
    """
    凭据引用（不含秘密本身）

    - ssh_key: source 为私钥文件路径
    - token: source 为环境变量名
    - aws_profile: source 为 AWS profile 名
    """

    kind: CredentialKind
    source: str


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = True


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    storage_dir: Path = Path("storage")
    definition_path: Path = Path("config/pipeline.yaml")

    # 各子配置
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    credentials: dict[str, CredentialRef] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "SHIPLINE_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})
        storage = cls._extract(runtime_opts, "storage")

        config = cls(
            concurrency=ConcurrencyConfig(**cls._extract(runtime_opts, "concurrency")),
            timeouts=TimeoutConfig(**cls._extract(runtime_opts, "timeouts")),
            toolchain=ToolchainConfig(**cls._extract(runtime_opts, "toolchain")),
            credentials={
                name: CredentialRef(**ref)
                for name, ref in (runtime_opts.get("credentials") or {}).items()
            },
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
            **storage,
        )

        config._resolve_paths(base_dir=path.parent, declared=set(storage))
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path, declared: set[str]) -> None:
        """解析YAML中声明的相对路径为绝对路径（基于配置文件所在目录）"""
        if "storage_dir" in declared and not self.storage_dir.is_absolute():
            self.storage_dir = (base_dir / self.storage_dir).resolve()
        if "definition_path" in declared and not self.definition_path.is_absolute():
            self.definition_path = (base_dir / self.definition_path).resolve()
        for name, ref in self.credentials.items():
            if ref.kind == CredentialKind.SSH_KEY:
                key_path = Path(ref.source).expanduser()
                if not key_path.is_absolute():
                    self.credentials[name] = CredentialRef(
                        kind=ref.kind, source=str((base_dir / key_path).resolve())
                    )

    def get_run_dir(self, run_id: str) -> Path:
        """获取运行工作目录"""
        return self.storage_dir / "runs" / run_id

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        (self.storage_dir / "runs").mkdir(exist_ok=True)


def setup_logging(config: RuntimeConfig) -> None:
    """按配置初始化根日志"""
    level = getattr(logging, config.logging.log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.log_to_file:
        log_dir = config.storage_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "shipline.log", encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=handlers,
        force=True,
    )


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(DEFAULT_RUNTIME_PATH)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or DEFAULT_RUNTIME_PATH
    _config = RuntimeConfig.from_yaml(path)
    return _config
