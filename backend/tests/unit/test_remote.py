"""
远程执行单元测试（对象存储/安全外壳/凭据/远程执行器）

每个模块完成后必须运行：pytest backend/tests/unit/test_remote.py -v
"""

import subprocess
from pathlib import Path

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from shipline.config import CredentialRef
from shipline.interfaces import CredentialError, RemoteExecutionFailure, UploadFailure
from shipline.models import (
    Artifact,
    ArtifactId,
    CredentialKind,
    LocationKind,
    TargetHost,
)
from shipline.remote import CredentialStore, RemoteExecutor, S3ObjectStore, SecureShell
from shipline.remote import secure_shell as secure_shell_module


@pytest.fixture
def artifact(temp_dir: Path) -> Artifact:
    path = temp_dir / "NETFLIX-1.2.2.war"
    path.write_bytes(b"war-bytes")
    return Artifact(
        identity=ArtifactId(name="NETFLIX", version="1.2.2"),
        local_path=path,
        checksum="deadbeef",
    )


@pytest.fixture
def host() -> TargetHost:
    return TargetHost(name="ansible", address="10.0.0.5", artifact_dir="/root/artifact")


class FakeS3Client:
    def __init__(self, status: int = 200, error: Exception | None = None):
        self.status = status
        self.error = error
        self.calls = []

    def put_object(self, **kwargs):
        kwargs["Body"] = kwargs["Body"].read()
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return {"ResponseMetadata": {"HTTPStatusCode": self.status}}


def _client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PutObject",
    )


class TestS3ObjectStore:
    """对象存储测试"""

    def test_put_artifact_success(self, artifact: Artifact):
        client = FakeS3Client()
        store = S3ObjectStore(client_factory=lambda region, cred: client)
        location = store.put_artifact(artifact, "myartifact325", "us-east-1", key="target/NETFLIX-1.2.2.war")

        assert location.kind == LocationKind.OBJECT_STORE
        assert location.uri == "s3://myartifact325/target/NETFLIX-1.2.2.war"
        call = client.calls[0]
        assert call["Bucket"] == "myartifact325"
        assert call["StorageClass"] == "STANDARD"
        assert call["Body"] == b"war-bytes"
        assert call["Metadata"]["sha256"] == "deadbeef"

    def test_default_key_is_filename(self, artifact: Artifact):
        store = S3ObjectStore(client_factory=lambda region, cred: FakeS3Client())
        location = store.put_artifact(artifact, "b", "us-east-1")
        assert location.uri == "s3://b/NETFLIX-1.2.2.war"

    @pytest.mark.parametrize("code", ["AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"])
    def test_put_artifact_auth_failure(self, artifact: Artifact, code: str):
        client = FakeS3Client(error=_client_error(code, 403))
        store = S3ObjectStore(client_factory=lambda region, cred: client)
        with pytest.raises(UploadFailure) as exc_info:
            store.put_artifact(artifact, "b", "us-east-1")
        assert exc_info.value.reason == "upload auth failure"

    def test_missing_credentials_is_auth_failure(self, artifact: Artifact):
        store = S3ObjectStore(client_factory=lambda region, cred: FakeS3Client(error=NoCredentialsError()))
        with pytest.raises(UploadFailure) as exc_info:
            store.put_artifact(artifact, "b", "us-east-1")
        assert exc_info.value.reason == "upload auth failure"

    def test_put_artifact_connection_failure(self, artifact: Artifact):
        error = EndpointConnectionError(endpoint_url="https://s3.us-east-1.amazonaws.com")
        store = S3ObjectStore(client_factory=lambda region, cred: FakeS3Client(error=error))
        with pytest.raises(UploadFailure) as exc_info:
            store.put_artifact(artifact, "b", "us-east-1")
        assert exc_info.value.reason == "upload connection failure"

    def test_put_artifact_non_2xx(self, artifact: Artifact):
        store = S3ObjectStore(client_factory=lambda region, cred: FakeS3Client(status=500))
        with pytest.raises(UploadFailure) as exc_info:
            store.put_artifact(artifact, "b", "us-east-1")
        assert exc_info.value.reason == "upload rejected (HTTP 500)"

    def test_server_error_is_not_auth(self, artifact: Artifact):
        store = S3ObjectStore(
            client_factory=lambda region, cred: FakeS3Client(error=_client_error("NoSuchBucket", 404))
        )
        with pytest.raises(UploadFailure) as exc_info:
            store.put_artifact(artifact, "b", "us-east-1")
        assert exc_info.value.reason == "upload rejected (HTTP 404)"

    def test_missing_file(self, artifact: Artifact):
        artifact.local_path.unlink()
        store = S3ObjectStore(client_factory=lambda region, cred: FakeS3Client())
        with pytest.raises(UploadFailure) as exc_info:
            store.put_artifact(artifact, "b", "us-east-1")
        assert exc_info.value.reason == "upload failure"


class FakeRun:
    """替换 subprocess.run"""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "", raise_timeout: bool = False):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raise_timeout = raise_timeout
        self.cmds: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        self.cmds.append(cmd)
        if self.raise_timeout:
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))
        return subprocess.CompletedProcess(cmd, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def shell() -> SecureShell:
    return SecureShell(ssh="ssh", scp="scp")


@pytest.fixture
def key_credential(credential_store: CredentialStore):
    with credential_store.acquire("ansible") as cred:
        yield cred


class TestSecureShell:
    """安全外壳测试"""

    def test_copy_file_success(self, shell, artifact, host, key_credential, monkeypatch):
        fake = FakeRun()
        monkeypatch.setattr(secure_shell_module.subprocess, "run", fake)

        remote_path = shell.copy_file(artifact.local_path, host, "/root/artifact", key_credential)

        assert remote_path == "/root/artifact/NETFLIX-1.2.2.war"
        cmd = fake.cmds[0]
        assert cmd[0] == "scp"
        assert "StrictHostKeyChecking=no" in cmd
        assert cmd[cmd.index("-i") + 1] == key_credential.secret
        assert cmd[cmd.index("-P") + 1] == "22"
        assert cmd[-1] == "root@10.0.0.5:/root/artifact/NETFLIX-1.2.2.war"

    def test_copy_file_auth_failure(self, shell, artifact, host, key_credential, monkeypatch):
        fake = FakeRun(returncode=255, stderr="root@10.0.0.5: Permission denied (publickey).")
        monkeypatch.setattr(secure_shell_module.subprocess, "run", fake)

        with pytest.raises(UploadFailure) as exc_info:
            shell.copy_file(artifact.local_path, host, "/root/artifact", key_credential)
        assert exc_info.value.reason == "transfer auth failure"

    def test_copy_file_connection_failure(self, shell, artifact, host, key_credential, monkeypatch):
        fake = FakeRun(returncode=255, stderr="ssh: connect to host 10.0.0.5 port 22: Connection refused")
        monkeypatch.setattr(secure_shell_module.subprocess, "run", fake)

        with pytest.raises(UploadFailure) as exc_info:
            shell.copy_file(artifact.local_path, host, "/root/artifact", key_credential)
        assert exc_info.value.reason == "transfer connection failure"

    def test_copy_file_other_exit(self, shell, artifact, host, key_credential, monkeypatch):
        fake = FakeRun(returncode=1, stderr="scp: /root/artifact: No such file or directory")
        monkeypatch.setattr(secure_shell_module.subprocess, "run", fake)

        with pytest.raises(UploadFailure) as exc_info:
            shell.copy_file(artifact.local_path, host, "/root/artifact", key_credential)
        assert exc_info.value.reason == "transfer failed with exit code 1"

    def test_run_command_success(self, shell, host, key_credential, monkeypatch):
        fake = FakeRun(stdout="PLAY RECAP ok=1")
        monkeypatch.setattr(secure_shell_module.subprocess, "run", fake)

        result = shell.run_command(host, "ansible-playbook /etc/ansible/deploy.yml", key_credential)

        assert result.exit_code == 0
        assert result.output == "PLAY RECAP ok=1"
        cmd = fake.cmds[0]
        assert cmd[0] == "ssh"
        assert cmd[-2:] == ["root@10.0.0.5", "ansible-playbook /etc/ansible/deploy.yml"]

    def test_run_command_nonzero_exit(self, shell, host, key_credential, monkeypatch):
        monkeypatch.setattr(secure_shell_module.subprocess, "run", FakeRun(returncode=2, stderr="fatal"))

        with pytest.raises(RemoteExecutionFailure) as exc_info:
            shell.run_command(host, "ansible-playbook deploy.yml", key_credential)
        assert exc_info.value.exit_code == 2
        assert exc_info.value.reason == "remote command exited with code 2"

    def test_run_command_auth_failure(self, shell, host, key_credential, monkeypatch):
        fake = FakeRun(returncode=255, stderr="Permission denied (publickey).")
        monkeypatch.setattr(secure_shell_module.subprocess, "run", fake)

        with pytest.raises(RemoteExecutionFailure) as exc_info:
            shell.run_command(host, "true", key_credential)
        assert exc_info.value.reason == "remote auth failure"

    def test_run_command_timeout(self, shell, host, key_credential, monkeypatch):
        monkeypatch.setattr(secure_shell_module.subprocess, "run", FakeRun(raise_timeout=True))

        with pytest.raises(RemoteExecutionFailure) as exc_info:
            shell.run_command(host, "sleep 9999", key_credential)
        assert exc_info.value.reason == "remote connection failure"


class TestCredentialStore:
    """凭据仓库测试"""

    def test_acquire_ssh_key(self, credential_store: CredentialStore, ssh_key_file: Path):
        with credential_store.acquire("ansible") as cred:
            assert cred.kind == CredentialKind.SSH_KEY
            assert cred.secret == str(ssh_key_file)
        assert cred.released

    def test_acquire_token(self, credential_store: CredentialStore):
        with credential_store.acquire("slack") as cred:
            assert cred.secret.startswith("https://hooks.slack.test/")
        assert cred.released

    def test_released_on_error(self, credential_store: CredentialStore):
        with pytest.raises(ValueError):
            with credential_store.acquire("s3") as cred:
                raise ValueError("boom")
        assert cred.released

    def test_unknown_ref(self, credential_store: CredentialStore):
        with pytest.raises(CredentialError):
            with credential_store.acquire("nope"):
                pass

    def test_missing_key_file(self, temp_dir: Path):
        store = CredentialStore({"k": CredentialRef(kind=CredentialKind.SSH_KEY, source=str(temp_dir / "x"))})
        with pytest.raises(CredentialError):
            with store.acquire("k"):
                pass

    def test_missing_env_token(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("ABSENT_TOKEN_VAR", raising=False)
        store = CredentialStore({"t": CredentialRef(kind=CredentialKind.TOKEN, source="ABSENT_TOKEN_VAR")})
        with pytest.raises(CredentialError):
            with store.acquire("t"):
                pass


class TestRemoteExecutor:
    """远程执行器测试"""

    def test_copy_to_host_location(self, artifact, host, credential_store, monkeypatch):
        monkeypatch.setattr(secure_shell_module.subprocess, "run", FakeRun())
        remote = RemoteExecutor(
            object_store=S3ObjectStore(client_factory=lambda r, c: FakeS3Client()),
            shell=SecureShell(),
            credentials=credential_store,
        )
        location = remote.copy_to_host(artifact, host, "ansible")

        assert location.kind == LocationKind.REMOTE_HOST
        assert location.uri == "ssh://root@10.0.0.5:22/root/artifact/NETFLIX-1.2.2.war"

    def test_upload_passes_profile_credential(self, artifact, credential_store):
        seen = []

        def factory(region, cred):
            seen.append((region, cred.secret))
            return FakeS3Client()

        remote = RemoteExecutor(
            object_store=S3ObjectStore(client_factory=factory),
            shell=SecureShell(),
            credentials=credential_store,
        )
        remote.upload_to_object_store(artifact, "b", "us-east-1", credential_ref="s3")
        assert seen == [("us-east-1", "S3")]

    def test_unknown_upload_credential_is_auth_failure(self, artifact, credential_store):
        remote = RemoteExecutor(
            object_store=S3ObjectStore(client_factory=lambda r, c: FakeS3Client()),
            shell=SecureShell(),
            credentials=credential_store,
        )
        with pytest.raises(UploadFailure) as exc_info:
            remote.upload_to_object_store(artifact, "b", "us-east-1", credential_ref="missing")
        assert exc_info.value.reason == "upload auth failure"

    def test_missing_ssh_key_is_remote_auth_failure(self, host, temp_dir):
        store = CredentialStore({"k": CredentialRef(kind=CredentialKind.SSH_KEY, source=str(temp_dir / "x"))})
        remote = RemoteExecutor(
            object_store=S3ObjectStore(client_factory=lambda r, c: FakeS3Client()),
            shell=SecureShell(),
            credentials=store,
        )
        with pytest.raises(RemoteExecutionFailure) as exc_info:
            remote.execute_remote(host, "true", "k")
        assert exc_info.value.reason == "remote auth failure"
