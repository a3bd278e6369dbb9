"""
Slack 通知器 - 通过 incoming webhook 发送最终结果

职责：
1. 按结果选择模板与颜色（good/danger）
2. webhook 地址作为凭据，仅在发送期间解析
3. 发送失败抛出 NotificationFailure（由流水线记录，不改变结果）
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

from ..config import get_config
from ..interfaces import CredentialError, INotifier, NotificationFailure
from ..remote.credentials import CredentialStore

if TYPE_CHECKING:
    from ..config.definition_loader import NotifySection
    from ..models import Outcome

logger = logging.getLogger(__name__)


class SlackNotifier(INotifier):
    """Slack webhook 通知器"""

    def __init__(
        self,
        section: NotifySection,
        credentials: CredentialStore | None = None,
        timeout: int | None = None,
    ):
        self.section = section
        self.credentials = credentials or CredentialStore()
        self.timeout = timeout or get_config().timeouts.notify_sec

    def build_payload(self, outcome: Outcome, channel: str) -> dict:
        return {
            "channel": channel,
            "attachments": [
                {
                    "color": self.section.color_for(outcome),
                    "text": self.section.render(outcome),
                }
            ],
        }

    def notify(self, outcome: Outcome, channel: str) -> None:
        """发送通知"""
        payload = self.build_payload(outcome, channel)
        try:
            with self.credentials.acquire(self.section.webhook_credential) as credential:
                r = requests.post(credential.secret, json=payload, timeout=self.timeout)
        except CredentialError as e:
            raise NotificationFailure("notification failure", e.detail) from e
        except requests.RequestException as e:
            raise NotificationFailure("notification failure", str(e)) from e

        if r.status_code >= 300:
            raise NotificationFailure("notification failure", f"HTTP {r.status_code} {r.text}")

        logger.info(f"通知已发送: {channel} ({payload['attachments'][0]['color']})")
