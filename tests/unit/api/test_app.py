"""
Tests for the HTTP API.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.snaptag.api.app import create_app
from src.snaptag.api.routes import get_pipeline, get_store, get_tag_generator
from src.snaptag.errors import (
    ConfigurationError,
    PersistenceError,
    TaggingError,
    UploadRejectedError,
)
from src.snaptag.services.ingestion import IngestionPipeline
from src.snaptag.services.storage import UploadResult
from tests.conftest import TEST_JWT_SECRET

URL = "https://bucket.s3.us-east-1.amazonaws.com/1700000000000-cat.jpg"


class TestApi:
    """Route behaviour with a real in-memory store and mocked upstreams."""

    @pytest.fixture(autouse=True)
    def setup_app(self, monkeypatch, memory_store, test_data_factory):
        monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
        self.store = memory_store
        self.uploader = MagicMock()
        self.uploader.upload.return_value = UploadResult(
            object_key="1700000000000-cat.jpg",
            url=URL,
            content_type="image/jpeg",
            size=3,
            payload_sha256="0" * 64,
            uploaded_at=MagicMock(),
        )
        self.tagger = MagicMock()
        self.tagger.tag.return_value = "cat, sofa"
        self.pipeline = IngestionPipeline(self.uploader, self.store, self.tagger)

        self.app = create_app()
        self.app.dependency_overrides[get_store] = lambda: self.store
        self.app.dependency_overrides[get_pipeline] = lambda: self.pipeline
        self.app.dependency_overrides[get_tag_generator] = lambda: self.tagger
        self.client = TestClient(self.app)
        self.headers = test_data_factory.create_auth_headers(user_id="alice")
        self.factory = test_data_factory

    def upload(self, filename="cat.jpg", data=b"abc"):
        return self.client.post(
            "/upload-image", files={"image": (filename, data, "image/jpeg")}, headers=self.headers
        )

    # Authentication

    @pytest.mark.parametrize(
        "method, path",
        [
            ("post", "/upload-image"),
            ("get", "/search-images?query=cat"),
            ("get", "/images"),
            ("patch", "/images/abc"),
            ("post", "/images/bulk-update"),
            ("post", "/generate-tags"),
        ],
    )
    def test_routes_require_authorization(self, method, path):
        response = getattr(self.client, method)(path)

        assert response.status_code == 401
        assert response.json()["code"] == "missing_authorization"

    def test_invalid_token(self):
        response = self.client.get("/images", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    # Upload

    def test_upload_success(self):
        response = self.upload()

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Upload successful"
        assert body["url"] == URL
        assert body["data"]["user_id"] == "alice"
        assert body["data"]["tags"] == ["cat", "sofa"]
        assert body["tagging_status"] == "enriched"
        self.uploader.upload.assert_called_once_with(b"abc", "cat.jpg", "image/jpeg")

    def test_upload_forwards_caller_token_to_tagger(self):
        self.upload()

        token = self.headers["Authorization"].split(" ", 1)[1]
        self.tagger.tag.assert_called_once_with(URL, token)

    def test_upload_missing_file(self):
        response = self.client.post("/upload-image", headers=self.headers)

        assert response.status_code == 400
        assert response.json()["error"] == "No image file provided"

    def test_upload_empty_file(self):
        response = self.upload(data=b"")

        assert response.status_code == 400
        assert response.json()["code"] == "empty_file"
        self.uploader.upload.assert_not_called()

    def test_upload_not_configured(self):
        self.uploader.upload.side_effect = ConfigurationError(
            "Object storage is not configured. Please set S3_BUCKET_NAME.", missing=["S3_BUCKET_NAME"]
        )

        response = self.upload()

        assert response.status_code == 500
        assert response.json()["code"] == "not_configured"

    def test_upload_rejected_by_storage(self):
        self.uploader.upload.side_effect = UploadRejectedError(
            "rejected", status_code=403, body="<Error>AccessDenied</Error>"
        )

        response = self.upload()

        assert response.status_code == 502
        assert response.json() == {
            "error": "Failed to upload to storage",
            "status": 403,
            "details": "<Error>AccessDenied</Error>",
        }
        assert self.store.query("alice") == []

    def test_upload_persistence_failure_reports_url(self, monkeypatch):
        monkeypatch.setattr(self.store, "insert", MagicMock(side_effect=PersistenceError("disk full")))

        response = self.upload()

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to save image metadata"
        assert response.json()["url"] == URL

    def test_upload_succeeds_when_tagging_fails(self):
        self.tagger.tag.side_effect = TaggingError("provider down")

        response = self.upload(filename="my_cat.jpg")

        assert response.status_code == 200
        assert response.json()["data"]["tags"] == ["my", "cat"]
        assert response.json()["tagging_status"] == "baseline_only"

    # Search and listing

    def test_search(self):
        self.store.insert("alice", "beach.jpg", "https://b/1", ["red", "car"])
        self.store.insert("alice", "park.jpg", "https://b/2", ["red"])
        self.store.insert("bob", "red car.jpg", "https://b/3", ["red", "car"])

        response = self.client.get("/search-images", params={"query": "Red Car"}, headers=self.headers)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["images"][0]["filename"] == "beach.jpg"

    def test_search_missing_query(self):
        response = self.client.get("/search-images", headers=self.headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Query parameter is required"

    def test_search_blank_query_lists_everything(self):
        self.store.insert("alice", "a.jpg", "https://b/1", [])
        self.store.insert("alice", "b.jpg", "https://b/2", [])

        response = self.client.get("/search-images", params={"query": " "}, headers=self.headers)

        assert response.json()["count"] == 2

    def test_list_images_favorites(self):
        favorite = self.store.insert("alice", "a.jpg", "https://b/1", [])
        self.store.insert("alice", "b.jpg", "https://b/2", [])
        self.store.update(favorite.id, {"is_favorite": True})

        response = self.client.get("/images", params={"favorites_only": "true"}, headers=self.headers)

        assert [image["id"] for image in response.json()["images"]] == [favorite.id]

    # Updates

    def test_update_image(self):
        record = self.store.insert("alice", "a.jpg", "https://b/1", [])

        response = self.client.patch(f"/images/{record.id}", json={"filename": "b.jpg", "hidden": True}, headers=self.headers)

        assert response.status_code == 200
        assert response.json()["filename"] == "b.jpg"
        assert response.json()["hidden"] is True

    def test_update_unknown_image(self):
        response = self.client.patch("/images/missing", json={"hidden": True}, headers=self.headers)

        assert response.status_code == 404

    def test_update_other_users_image(self):
        record = self.store.insert("bob", "a.jpg", "https://b/1", [])

        response = self.client.patch(f"/images/{record.id}", json={"deleted": True}, headers=self.headers)

        assert response.status_code == 404
        assert self.store.get(record.id).deleted is False

    def test_update_immutable_field(self):
        record = self.store.insert("alice", "a.jpg", "https://b/1", [])

        response = self.client.patch(f"/images/{record.id}", json={"url": "https://evil"}, headers=self.headers)

        assert response.status_code == 400
        assert response.json()["code"] == "immutable_field"

    def test_bulk_update(self):
        first = self.store.insert("alice", "a.jpg", "https://b/1", [])
        second = self.store.insert("alice", "b.jpg", "https://b/2", [])

        response = self.client.post(
            "/images/bulk-update",
            json={"ids": [first.id, second.id, "missing"], "fields": {"deleted": True}},
            headers=self.headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["successful"] == 2
        assert body["failed"] == 1
        assert body["success"] is False

    # Tag generation

    def test_generate_tags(self):
        response = self.client.post("/generate-tags", json={"imageUrl": URL}, headers=self.headers)

        assert response.status_code == 200
        assert response.json() == {"tags": ["cat", "sofa"]}

    def test_generate_tags_missing_url(self):
        response = self.client.post("/generate-tags", json={}, headers=self.headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Missing imageUrl"

    def test_generate_tags_failure_answers_200(self):
        self.tagger.tag.side_effect = TaggingError("Image too large", code="image_too_large")

        response = self.client.post("/generate-tags", json={"imageUrl": URL}, headers=self.headers)

        assert response.status_code == 200
        assert response.json()["error"] == "Image too large"
        assert response.json()["tags"] == []

    # Health and unexpected failures

    def test_health_does_not_require_authorization(self):
        response = self.client.get("/health")

        assert response.status_code in (200, 503)
        assert set(response.json()["checks"]) == {"database", "storage", "tagger"}

    def test_unexpected_error_is_500(self):
        self.tagger.tag.side_effect = None
        self.uploader.upload.side_effect = KeyError("boom")
        client = TestClient(self.app, raise_server_exceptions=False)

        response = client.post("/upload-image", files={"image": ("a.jpg", b"abc", "image/jpeg")}, headers=self.headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
