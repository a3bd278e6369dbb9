"""
构建工具链 - 代码拉取与编译/测试/打包

子模块：
- build_tool: git 拉取 + Maven 目标执行
"""

from .build_tool import MavenBuildTool

__all__ = [
    "MavenBuildTool",
]
