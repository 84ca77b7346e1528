"""
Tests for file uploads and the storage targets behind them.
"""
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from marketplace.core.errors import MarketplaceError, ValidationFailed
from marketplace.services.file_storage import (
    LocalFileStorage,
    S3FileStorage,
    create_file_storage,
    validate_upload,
)


class TestUploadRoutes:
    """Tests for POST /api/upload/{video,document} and GET /uploads/..."""

    def test_video_upload_is_served_back(self, vendor_client, settings):
        response = vendor_client.post(
            "/api/upload/video", files={"video": ("pitch.MP4", b"fake video bytes", "video/mp4")}
        )

        assert response.status_code == 200
        url = response.json()["url"]
        assert url.startswith("/uploads/videos/")
        assert url.endswith(".mp4")
        stored = Path(settings.UPLOAD_DIR) / url.removeprefix("/uploads/")
        assert stored.read_bytes() == b"fake video bytes"

        served = vendor_client.get(url)
        assert served.status_code == 200
        assert served.content == b"fake video bytes"

    def test_document_upload(self, vendor_client):
        response = vendor_client.post(
            "/api/upload/document",
            files={"document": ("white-paper.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 200
        assert response.json()["url"].startswith("/uploads/documents/")

    def test_wrong_extension(self, vendor_client):
        response = vendor_client.post(
            "/api/upload/video", files={"video": ("payload.exe", b"MZ", "application/octet-stream")}
        )

        assert response.status_code == 400
        assert "Unsupported video type" in response.json()["detail"]

    def test_empty_file(self, vendor_client):
        response = vendor_client.post(
            "/api/upload/document", files={"document": ("empty.pdf", b"", "application/pdf")}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Uploaded file is empty"

    def test_wrong_field_name(self, vendor_client):
        response = vendor_client.post(
            "/api/upload/video", files={"document": ("pitch.mp4", b"data", "video/mp4")}
        )

        assert response.status_code == 422

    def test_requires_login(self, client):
        response = client.post(
            "/api/upload/video", files={"video": ("pitch.mp4", b"data", "video/mp4")}
        )

        assert response.status_code == 401

    def test_missing_file_is_404(self, client):
        assert client.get("/uploads/videos/nothing.mp4").status_code == 404


class TestValidateUpload:
    def test_extension_is_normalized(self):
        assert validate_upload("document", "Brief.PPTX", 10, 100) == ".pptx"

    @pytest.mark.parametrize(
        "kind,filename,size,message",
        [
            ("video", None, 10, "No video file uploaded"),
            ("video", "clip.pdf", 10, "Unsupported video type"),
            ("document", "notes", 10, "Unsupported document type"),
            ("document", "notes.txt", 0, "Uploaded file is empty"),
            ("document", "notes.txt", 101, "File exceeds the maximum upload size"),
        ],
    )
    def test_rejections(self, kind, filename, size, message):
        with pytest.raises(ValidationFailed, match=message):
            validate_upload(kind, filename, size, 100)


class TestLocalFileStorage:
    def test_resolve_stays_inside_upload_dir(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path / "uploads"))
        (tmp_path / "secret.txt").write_text("do not serve")
        url = storage.save("document", ".txt", b"ok", "text/plain")

        assert storage.resolve(url.removeprefix("/uploads/")) is not None
        assert storage.resolve("../secret.txt") is None
        assert storage.resolve("documents") is None


class TestS3FileStorage:
    def test_put_object(self):
        client = MagicMock()
        storage = S3FileStorage("pitch-bucket", "us-east-1", client=client)

        url = storage.save("video", ".mp4", b"bytes", "video/mp4")

        assert url.startswith("https://pitch-bucket.s3.us-east-1.amazonaws.com/videos/")
        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "pitch-bucket"
        assert kwargs["Body"] == b"bytes"
        assert kwargs["ContentType"] == "video/mp4"
        assert url.endswith(kwargs["Key"])

    def test_custom_endpoint_url(self):
        storage = S3FileStorage("bucket", "us-east-1", endpoint_url="http://minio:9000/", client=MagicMock())

        assert storage.save("document", ".pdf", b"x", None).startswith("http://minio:9000/bucket/documents/")

    def test_failure_is_generic(self):
        client = MagicMock()
        client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        storage = S3FileStorage("bucket", "us-east-1", client=client)

        with pytest.raises(MarketplaceError) as exc_info:
            storage.save("video", ".mp4", b"x", "video/mp4")

        assert exc_info.value.message == "Failed to store uploaded file"
        assert exc_info.value.status_code == 500

    def test_factory_prefers_s3_when_bucket_set(self, settings):
        assert isinstance(create_file_storage(settings), LocalFileStorage)
        assert isinstance(
            create_file_storage(settings.model_copy(update={"S3_BUCKET": "bucket"})), S3FileStorage
        )
