"""
对象存储 - S3 制品备份

职责：
1. 以凭据中的 profile 建立单次调用的 boto3 会话
2. PutObject 上传制品（成功判据：2xx）
3. 区分鉴权失败/连接失败/服务端拒绝

依赖：
- boto3/botocore

测试要点：
- test_put_artifact_success: 上传成功返回 s3:// 位置
- test_put_artifact_auth_failure: 鉴权错误
- test_put_artifact_connection_failure: 连接错误
- test_put_artifact_non_2xx: 非2xx响应
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
    ReadTimeoutError,
)

from ..config import get_config
from ..interfaces import IObjectStore, UploadFailure
from ..models import ArtifactLocation, LocationKind

if TYPE_CHECKING:
    from ..models import Artifact, Credential

logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
    "TokenRefreshRequired",
    "AllAccessDisabled",
}

ClientFactory = Callable[[str, "Credential | None"], Any]


class S3ObjectStore(IObjectStore):
    """S3 对象存储实现"""

    def __init__(self, client_factory: ClientFactory | None = None, timeout: int | None = None):
        config = get_config()
        self.timeout = timeout or config.timeouts.upload_sec
        self.connect_timeout = config.timeouts.connect_sec
        self._client_factory = client_factory or self._default_client

    def _default_client(self, region: str, credential: Credential | None) -> Any:
        profile = credential.secret if credential else None
        session = boto3.Session(profile_name=profile, region_name=region)
        return session.client(
            "s3",
            config=BotoConfig(
                connect_timeout=self.connect_timeout,
                read_timeout=self.timeout,
                retries={"total_max_attempts": 1, "mode": "standard"},
            ),
        )

    def put_artifact(
        self,
        artifact: Artifact,
        bucket: str,
        region: str,
        *,
        key: str | None = None,
        credential: Credential | None = None,
        storage_class: str = "STANDARD",
    ) -> ArtifactLocation:
        """上传制品"""
        object_key = key or artifact.filename
        if not artifact.local_path.is_file():
            raise UploadFailure("upload failure", f"制品文件不存在: {artifact.local_path}")

        try:
            client = self._client_factory(region, credential)
            with open(artifact.local_path, "rb") as body:
                response = client.put_object(
                    Bucket=bucket,
                    Key=object_key,
                    Body=body,
                    StorageClass=storage_class,
                    Metadata={"sha256": artifact.checksum, "version": artifact.version},
                )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if code in AUTH_ERROR_CODES or status in (401, 403):
                raise UploadFailure("upload auth failure", code) from e
            raise UploadFailure(f"upload rejected (HTTP {status})", code) from e
        except (NoCredentialsError, PartialCredentialsError, ProfileNotFound) as e:
            raise UploadFailure("upload auth failure", str(e)) from e
        except (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError) as e:
            raise UploadFailure("upload connection failure", str(e)) from e
        except BotoCoreError as e:
            raise UploadFailure("upload failure", str(e)) from e

        status = (response or {}).get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if not 200 <= status < 300:
            raise UploadFailure(f"upload rejected (HTTP {status})")

        uri = f"s3://{bucket}/{object_key}"
        logger.info(f"制品已上传: {uri} (region={region})")
        return ArtifactLocation(kind=LocationKind.OBJECT_STORE, uri=uri)
