"""
通知模块 - 流水线最终结果通知

子模块：
- slack: Slack webhook 通知器
"""

from .slack import SlackNotifier

__all__ = [
    "SlackNotifier",
]
