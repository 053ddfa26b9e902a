"""
API tests for the content endpoints.

The app is built with create_app() and its storage, field store and
settings dependencies are overridden with in-memory backends, so the
routes, dependency wiring and exception handlers run for real.
"""

import pytest
from fastapi.testclient import TestClient

from s3content.api.dependencies import (
    get_field_store,
    get_storage_client,
    reset_mock_backends,
)
from s3content.config.settings import Settings, get_settings, get_storage_config
from s3content.infrastructure.snowflake.client import MockSnowflakeConnection
from s3content.infrastructure.snowflake.repositories.fields import SnowflakeFieldRepository
from s3content.infrastructure.storage.client import (
    MockStorageClient,
    StorageConfig,
    StorageError,
)
from s3content.main import create_app

API_KEY = "test-key"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def storage():
    return MockStorageClient(bucket_name="media")


@pytest.fixture
def store():
    return SnowflakeFieldRepository(MockSnowflakeConnection())


@pytest.fixture
def app(storage, store):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: Settings(
        _env_file=None,
        api_keys=API_KEY,
        s3_mock_mode=True,
        snowflake_mock_mode=True,
        presign_expiry_seconds=900,
    )
    app.dependency_overrides[get_storage_config] = lambda: StorageConfig(
        access_key_id="",
        secret_access_key="",
        bucket_name="media",
    )
    app.dependency_overrides[get_storage_client] = lambda: storage
    app.dependency_overrides[get_field_store] = lambda: store
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class TestAuthentication:
    def test_missing_api_key_is_forbidden(self, client):
        response = client.post("/api/v1/content/relink", json={"key": "g", "post_id": 1})
        assert response.status_code == 403

    def test_wrong_api_key_is_forbidden(self, client):
        response = client.get("/api/v1/content/field-type", headers={"X-API-Key": "nope"})
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Upload Commands
# ---------------------------------------------------------------------------

class TestActionEndpoint:
    """POST /api/v1/content/action?command=..."""

    def _action(self, client, command, body=None):
        return client.post(
            "/api/v1/content/action",
            params={"command": command},
            json=body if body is not None else {},
            headers=HEADERS,
        )

    def test_unknown_command_is_bad_request(self, client, storage):
        response = self._action(client, "foo", {"Key": "a"})

        assert response.status_code == 400
        assert response.json()["detail"] == "No matching action found"

    def test_missing_field_is_unprocessable(self, client):
        response = self._action(client, "createMultipartUpload", {"Key": "a.jpg"})

        assert response.status_code == 422
        assert response.json()["missing"] == ["ContentType"]

    def test_multipart_lifecycle(self, client, storage):
        created = self._action(
            client,
            "createMultipartUpload",
            {"Key": "posts/1/a.mp4", "ContentType": "video/mp4"},
        )
        assert created.status_code == 200
        upload_id = created.json()["UploadId"]

        uploads = self._action(client, "listMultipartUploads")
        assert uploads.status_code == 200
        assert uploads.json()["Uploads"][0]["UploadId"] == upload_id
        # datetimes come back as ISO strings
        assert isinstance(uploads.json()["Uploads"][0]["Initiated"], str)

        signed = self._action(
            client,
            "signUploadPart",
            {"Key": "posts/1/a.mp4", "PartNumber": 1, "UploadId": upload_id},
        )
        assert "expires=900" in signed.json()["url"]

        completed = self._action(
            client,
            "completeMultipartUpload",
            {
                "Key": "posts/1/a.mp4",
                "UploadId": upload_id,
                "Parts": [{"PartNumber": 1, "ETag": '"e1"'}],
            },
        )
        assert completed.status_code == 200
        assert completed.json()["Key"] == "posts/1/a.mp4"

        deleted = self._action(client, "deleteObject", {"Key": "posts/1/a.mp4"})
        assert deleted.status_code == 200
        assert deleted.json() == {}

    def test_storage_error_is_bad_gateway(self, client):
        response = self._action(
            client,
            "abortMultipartUpload",
            {"Key": "a.mp4", "UploadId": "missing"},
        )

        assert response.status_code == 502


# ---------------------------------------------------------------------------
# Field Endpoints
# ---------------------------------------------------------------------------

class TestFieldEndpoints:
    def test_update_field_then_read_items(self, client, store):
        response = client.post(
            "/api/v1/content/update-field",
            json={"key": "gallery", "value": ["p/a.jpg", "p/b.jpg"], "post_id": 4},
            headers=HEADERS,
        )
        assert response.status_code == 204
        assert response.content == b""
        assert store.get_field("gallery", 4) == ["p/a.jpg", "p/b.jpg"]

        items = client.get("/api/v1/content/fields/4/gallery", headers=HEADERS)
        assert items.json() == [
            {"bucket": "media", "key": "p/a.jpg"},
            {"bucket": "media", "key": "p/b.jpg"},
        ]

    def test_unset_field_reads_as_empty(self, client):
        response = client.get("/api/v1/content/fields/4/gallery", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == []

    def test_relink_returns_plain_array(self, client, storage, store):
        storage.put_object("photos/")
        storage.put_object("photos/a.jpg", b"a")
        storage.put_object("photos/b.jpg", b"b")
        storage.put_object("other/c.jpg", b"c")

        response = client.post(
            "/api/v1/content/relink",
            json={"key": "gallery", "post_id": 9, "base_key": "photos"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == ["photos/a.jpg", "photos/b.jpg"]
        assert store.get_field("gallery", 9) == ["photos/a.jpg", "photos/b.jpg"]

    def test_relink_storage_failure_leaves_field(self, app, client, store):
        class FailingStorage(MockStorageClient):
            async def list_objects(self, prefix: str) -> dict:
                raise StorageError("List objects failed: throttled")

        app.dependency_overrides[get_storage_client] = lambda: FailingStorage("media")
        store.update_field("gallery", ["old.jpg"], 9)

        response = client.post(
            "/api/v1/content/relink",
            json={"key": "gallery", "post_id": 9, "base_key": "photos"},
            headers=HEADERS,
        )

        assert response.status_code == 502
        assert store.get_field("gallery", 9) == ["old.jpg"]

    def test_field_type(self, client):
        response = client.get("/api/v1/content/field-type", headers=HEADERS)

        assert response.json() == {
            "name": "s3_content",
            "label": "S3 Content",
            "bucket": "media",
        }


class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"]["mock_mode"] == {"snowflake": True, "s3": True}


class TestSharedMockBackends:
    """Without overrides, mock mode shares one backend across requests."""

    @pytest.fixture
    def mock_client(self):
        reset_mock_backends()
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None,
            api_keys=API_KEY,
            s3_mock_mode=True,
            snowflake_mock_mode=True,
        )
        app.dependency_overrides[get_storage_config] = lambda: StorageConfig(
            access_key_id="",
            secret_access_key="",
            bucket_name="media",
        )
        yield TestClient(app)
        reset_mock_backends()

    def test_field_value_persists_between_requests(self, mock_client):
        mock_client.post(
            "/api/v1/content/update-field",
            json={"key": "gallery", "value": ["p/a.jpg"], "post_id": 2},
            headers=HEADERS,
        )

        response = mock_client.get("/api/v1/content/fields/2/gallery", headers=HEADERS)

        assert response.json() == [{"bucket": "media", "key": "p/a.jpg"}]

    def test_upload_persists_between_requests(self, mock_client):
        created = mock_client.post(
            "/api/v1/content/action",
            params={"command": "createMultipartUpload"},
            json={"Key": "a.mp4", "ContentType": "video/mp4"},
            headers=HEADERS,
        )

        uploads = mock_client.post(
            "/api/v1/content/action",
            params={"command": "listMultipartUploads"},
            json={},
            headers=HEADERS,
        )

        assert uploads.json()["Uploads"][0]["UploadId"] == created.json()["UploadId"]


class TestUploadsWithoutFieldStore:
    """Upload commands don't open a field-store connection."""

    @pytest.fixture
    def no_store_client(self, storage):
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None,
            api_keys=API_KEY,
            s3_mock_mode=True,
            snowflake_mock_mode=False,
            snowflake_password="",
            snowflake_private_key_path=None,
        )
        app.dependency_overrides[get_storage_config] = lambda: StorageConfig(
            access_key_id="",
            secret_access_key="",
            bucket_name="media",
        )
        app.dependency_overrides[get_storage_client] = lambda: storage
        return TestClient(app)

    def test_unknown_command_is_bad_request(self, no_store_client):
        response = no_store_client.post(
            "/api/v1/content/action",
            params={"command": "foo"},
            json={"Key": "a"},
            headers=HEADERS,
        )

        assert response.status_code == 400

    def test_create_multipart_upload_succeeds(self, no_store_client):
        response = no_store_client.post(
            "/api/v1/content/action",
            params={"command": "createMultipartUpload"},
            json={"Key": "a.mp4", "ContentType": "video/mp4"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["UploadId"]


class TestReadiness:
    """GET /health/ready"""

    def _client(self, **settings):
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None, api_keys=API_KEY, **settings
        )
        return TestClient(app)

    def test_ready_in_mock_mode(self):
        client = self._client(s3_mock_mode=True, snowflake_mock_mode=True)

        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert {c["name"]: c["status"] for c in response.json()["checks"]} == {
            "configuration": "ok",
            "storage_config": "ok",
            "field_store": "ok",
        }

    def test_not_ready_when_storage_config_and_field_store_fail(self):
        client = self._client(
            s3_mock_mode=False,
            s3_access_key_id="",
            s3_secret_access_key="",
            s3_bucket_name="",
            s3_config_file=None,
            snowflake_mock_mode=False,
            snowflake_password="",
            snowflake_private_key_path=None,
        )

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
        checks = {c["name"]: c for c in response.json()["checks"]}
        assert checks["storage_config"]["status"] == "error"
        assert checks["field_store"]["status"] == "error"
        assert "password or private_key_path" in checks["field_store"]["error"]
