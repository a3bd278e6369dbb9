"""
流水线模块 - 阶段编排与运行管理

子模块：
- stages: 流水线各阶段定义
- executor: 流水线执行器
- run_config: 单次运行配置
- run_manager: 运行记录管理
- packager: 制品捕获与记录
- dispatcher: 并发运行调度
"""

from .dispatcher import PipelineDispatcher
from .executor import PipelineExecutor
from .packager import Packager
from .run_config import RunConfig
from .run_manager import RunManager
from .stages import PipelineStage, StageContext, StageEnum, build_default_stages

__all__ = [
    "PipelineStage",
    "StageContext",
    "StageEnum",
    "build_default_stages",
    "PipelineExecutor",
    "PipelineDispatcher",
    "RunConfig",
    "RunManager",
    "Packager",
]
