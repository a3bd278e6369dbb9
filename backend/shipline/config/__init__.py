"""
配置层 - 加载流水线定义与运行期配置

职责：
- 加载 config/pipeline.yaml（流水线定义/目标注册表/通知模板）
- 加载 config/runtime.yaml（运行期参数/凭据引用）
- 提供类型安全的配置访问接口
"""

from .definition_loader import DefinitionLoader, PipelineDefinition, load_definition
from .runtime_config import (
    CredentialRef,
    RuntimeConfig,
    get_config,
    reload_config,
    setup_logging,
)

__all__ = [
    "DefinitionLoader",
    "PipelineDefinition",
    "load_definition",
    "CredentialRef",
    "RuntimeConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
