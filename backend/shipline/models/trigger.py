"""
触发事件 - 代码推送
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

_BRANCH_PREFIX = "refs/heads/"


class PushEvent(BaseModel):
    """代码推送事件"""
    branch: str
    repo_url: str = ""
    commit: str | None = None
    pusher: str | None = None
    received_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_webhook(cls, payload: dict[str, Any]) -> PushEvent:
        """解析 GitHub 风格的 push webhook 负载"""
        ref = payload.get("ref") or ""
        if not ref.startswith(_BRANCH_PREFIX):
            raise ValueError(f"不是分支推送: {ref!r}")

        repository = payload.get("repository") or {}
        pusher = payload.get("pusher") or {}
        return cls(
            branch=ref[len(_BRANCH_PREFIX):],
            repo_url=repository.get("clone_url") or repository.get("url") or "",
            commit=payload.get("after"),
            pusher=pusher.get("name"),
        )
