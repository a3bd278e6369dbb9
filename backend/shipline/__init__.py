"""
shipline 部署流水线 - 后端核心模块

模块结构：
- config/     流水线定义与运行期配置
- models/     数据模型定义
- toolchain/  构建工具（git/Maven）
- remote/     远程执行（对象存储/scp/ssh/凭据/目标锁）
- notify/     结果通知（Slack）
- pipeline/   流水线编排与运行管理
"""

__version__ = "0.1.0"
