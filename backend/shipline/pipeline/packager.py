"""
打包器 - 捕获构建产物并维护制品记录

职责：
1. 在源码目录的已知路径定位唯一的构建产物
2. 生成制品句柄（固定 name/version + sha256）
3. 记录制品位置（幂等）
4. 生成 artifact.json（运行结束后保留的记录）

测试要点：
- test_package_captures_artifact: 定位产物并计算校验和
- test_package_missing_output: 产物缺失
- test_record_location_idempotent: 重复位置
- test_manifest_structure: 记录结构
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from ..interfaces import BuildFailure
from ..models import Artifact, ArtifactId, ArtifactLocation

if TYPE_CHECKING:
    from ..models import PipelineRun

logger = logging.getLogger(__name__)

ARTIFACT_FILENAME_RE = re.compile(r"^(?P<name>.+?)-(?P<version>\d[\w.\-]*)\.(?P<ext>[A-Za-z0-9]+)$")

_CHUNK = 1024 * 1024


def parse_artifact_filename(filename: str) -> tuple[str, str]:
    """从 <name>-<version>.<ext> 解析名称与版本"""
    m = ARTIFACT_FILENAME_RE.match(filename)
    if not m:
        raise ValueError(f"无法从文件名解析版本: {filename}")
    return m.group("name"), m.group("version")


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


class Packager:
    """打包器实现"""

    def __init__(self, artifact_path: str, name: str | None = None, version: str | None = None):
        self.artifact_path = artifact_path
        self.name = name
        self.version = version

    def package(self, source_dir: Path) -> Artifact:
        """捕获构建产物"""
        candidates = sorted(p for p in source_dir.glob(self.artifact_path) if p.is_file())
        if not candidates:
            raise BuildFailure("package failure", f"未找到构建产物: {source_dir / self.artifact_path}")
        if len(candidates) > 1:
            names = ", ".join(p.name for p in candidates)
            raise BuildFailure("package failure", f"构建产物不唯一: {names}")

        path = candidates[0]
        if self.name and self.version:
            name, version = self.name, self.version
        else:
            try:
                parsed_name, parsed_version = parse_artifact_filename(path.name)
            except ValueError as e:
                raise BuildFailure("package failure", str(e)) from e
            name = self.name or parsed_name
            version = self.version or parsed_version

        artifact = Artifact(
            identity=ArtifactId(name=name, version=version),
            local_path=path,
            checksum=sha256_file(path),
            size_bytes=path.stat().st_size,
        )
        logger.info(f"制品已捕获: {artifact.identity} ({artifact.size_bytes} bytes)")
        return artifact

    @staticmethod
    def record_location(artifact: Artifact, location: ArtifactLocation) -> bool:
        """记录制品位置（重复记录不改变状态）"""
        added = artifact.record_location(location)
        if added:
            logger.info(f"制品位置: {artifact.identity} @ {location.uri}")
        return added

    def generate_manifest(self, run: PipelineRun) -> Path:
        """生成 artifact.json"""
        if not run.work_dir:
            raise ValueError("Run work_dir not set")
        if not run.artifact:
            raise ValueError("Run has no artifact")

        artifact = run.artifact
        manifest = {
            "schema_version": "1.0",
            "run_id": run.run_id,
            "branch": run.trigger.branch,
            "commit": run.trigger.commit,

            "artifact": {
                "name": artifact.name,
                "version": artifact.version,
                "file": artifact.filename,
                "sha256": artifact.checksum,
                "size_bytes": artifact.size_bytes,
                "packaged_at": artifact.packaged_at.isoformat(),
            },

            "locations": [
                {
                    "kind": loc.kind.value,
                    "uri": loc.uri,
                    "recorded_at": loc.recorded_at.isoformat(),
                }
                for loc in artifact.locations
            ],

            "outcome": run.outcome.model_dump(mode="json") if run.outcome else None,

            "timestamps": {
                "created_at": run.created_at.isoformat() if run.created_at else None,
                "started_at": run.started_at.isoformat() if run.started_at else None,
                "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            },
        }

        manifest_path = run.work_dir / "artifact.json"
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, ensure_ascii=False, indent=2)

        return manifest_path
