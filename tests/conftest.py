"""
Pytest configuration and fixtures for snaptag tests.
"""

import tempfile
import time
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import jwt
import pytest

from src.snaptag import config as config_module
from src.snaptag.config import StorageSettings, TaggerSettings
from src.snaptag.models.image import ImageRecord
from src.snaptag.services import auth as auth_module
from src.snaptag.services import metadata as metadata_module
from src.snaptag.services import storage as storage_module
from src.snaptag.services.auth import UserInfo
from src.snaptag.services.metadata import DuckDBMetadataStore

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def sample_image_data() -> bytes:
    """Provide sample image data for testing (a 1x1 PNG)."""
    return bytes.fromhex(
        "89504e470d0a1a0a0000000d4948445200000001000000010802000000907753de"
        "0000000c4944415408d763f800000000010001000000000049454e44ae426082"
    )


@pytest.fixture
def mock_user_id() -> str:
    """Provide a mock user ID for testing."""
    return "test-user-123"


@pytest.fixture
def storage_settings() -> StorageSettings:
    """Complete object storage settings."""
    return StorageSettings(
        access_key_id="AKIDEXAMPLE",
        secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        bucket="test-snaptag-bucket",
        region="us-east-1",
        timeout=5.0,
    )


@pytest.fixture
def tagger_settings() -> TaggerSettings:
    return TaggerSettings(openai_api_key="sk-test", model="gpt-4o-mini", tagger_url=None, timeout=5.0)


@pytest.fixture
def memory_store() -> Generator[DuckDBMetadataStore, None, None]:
    """A metadata store backed by an in-memory DuckDB database."""
    store = DuckDBMetadataStore(db_path=":memory:")
    yield store
    store.close()


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables and reset cached global services."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DATABASE_PATH", ":memory:")
    for key in (
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "S3_BUCKET_NAME",
        "AWS_REGION",
        "OPENAI_API_KEY",
        "TAGGER_URL",
        "AUTH_JWT_SECRET",
        "TAGGING_MODE",
    ):
        monkeypatch.delenv(key, raising=False)

    config_module.get_config().clear_cache()
    storage_module.reset_object_uploader()
    auth_module._auth_service = None

    yield

    config_module.get_config().clear_cache()
    storage_module.reset_object_uploader()
    auth_module._auth_service = None
    metadata_module.close_metadata_store()


class TestDataFactory:
    """Factory class for creating test data objects."""

    @staticmethod
    def create_user_info(user_id: str = "test-user-123", email: str = "test@example.com") -> UserInfo:
        return UserInfo(user_id=user_id, email=email)

    @staticmethod
    def create_image_record(
        user_id: str = "test-user-123",
        filename: str = "photo.jpg",
        tags: list[str] | None = None,
        created_at: datetime | None = None,
        **flags: bool,
    ) -> ImageRecord:
        """Create an ImageRecord for matching and serialization tests."""
        record = ImageRecord.create_new(
            user_id=user_id,
            filename=filename,
            url=f"https://test-snaptag-bucket.s3.us-east-1.amazonaws.com/1700000000000-{filename}",
            tags=tags or [],
        )
        if created_at is not None:
            record.created_at = created_at
        for name, value in flags.items():
            setattr(record, name, value)
        return record

    @staticmethod
    def create_jwt_payload(
        user_id: str = "test-user-123",
        email: str = "test@example.com",
        iat: int | None = None,
        exp: int | None = None,
    ) -> dict:
        """Create a JWT payload for testing."""
        current_time = int(time.time())
        return {
            "sub": user_id,
            "email": email,
            "iat": iat or current_time,
            "exp": exp or (current_time + 3600),
        }

    @staticmethod
    def create_valid_jwt_token(payload: dict | None = None, secret: str = TEST_JWT_SECRET) -> str:
        """Create an HS256 token signed with the test secret."""
        if payload is None:
            payload = TestDataFactory.create_jwt_payload()
        return jwt.encode(payload, secret, algorithm="HS256")

    @staticmethod
    def create_auth_headers(user_id: str = "test-user-123", secret: str = TEST_JWT_SECRET) -> dict[str, str]:
        token = TestDataFactory.create_valid_jwt_token(TestDataFactory.create_jwt_payload(user_id=user_id), secret)
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def create_response(status_code: int = 200, text: str = "", json_data: object = None) -> MagicMock:
        """Create a mock requests.Response."""
        response = MagicMock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        response.text = text
        response.content = text.encode()
        response.headers = {}
        if json_data is not None:
            response.json.return_value = json_data
        else:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        return response


@pytest.fixture
def test_data_factory() -> TestDataFactory:
    """Provide TestDataFactory instance for tests."""
    return TestDataFactory()


@pytest.fixture
def fixed_time() -> datetime:
    return datetime(2024, 5, 24, 12, 30, 45, 123000, tzinfo=UTC)
