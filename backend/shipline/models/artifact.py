"""
制品模型 - 构建产物的身份与位置记录

约束：
- 打包后身份（name+version）在整个运行期间不可变
- 位置只追加不覆盖，重复的 (kind, uri) 记录为幂等操作
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class LocationKind(str, Enum):
    """位置类型"""
    OBJECT_STORE = "object_store"
    REMOTE_HOST = "remote_host"


class ArtifactId(BaseModel):
    """制品身份"""
    name: str
    version: str

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"


class ArtifactLocation(BaseModel):
    """制品位置"""
    kind: LocationKind
    uri: str
    recorded_at: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind.value, self.uri)


class Artifact(BaseModel):
    """制品句柄"""
    identity: ArtifactId
    local_path: Path
    checksum: str = Field("", description="sha256")
    size_bytes: int = 0
    packaged_at: datetime = Field(default_factory=datetime.now)
    locations: list[ArtifactLocation] = Field(default_factory=list)

    model_config = {"arbitrary_types_allowed": True}

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "identity":
            raise AttributeError("artifact identity is immutable once packaged")
        super().__setattr__(name, value)

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def filename(self) -> str:
        return self.local_path.name

    def record_location(self, location: ArtifactLocation) -> bool:
        """追加位置；已存在相同 (kind, uri) 时返回 False"""
        if any(loc.key == location.key for loc in self.locations):
            return False
        self.locations.append(location)
        return True

    def locations_of(self, kind: LocationKind) -> list[ArtifactLocation]:
        return [loc for loc in self.locations if loc.kind == kind]
