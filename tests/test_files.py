"""
Unit tests for file upload, download and metadata.
"""
import io

import pytest

from conftest import API, get_auth_header

from intranet import models
from intranet.deps import get_storage
from intranet.exceptions import FileTooLargeError
from intranet.services.files import ALLOWED_TYPES, validate_file_size, validate_file_type
from intranet.storage import LocalFileStorage

PDF_BYTES = b"%PDF-1.4\n% test document\n"


def upload(client, token, name="report.pdf", content=PDF_BYTES, mime="application/pdf", **form):
    return client.post(
        f"{API}/files",
        files={"file": (name, content, mime)},
        data=form,
        headers=get_auth_header(token),
    )


class TestAllowList:
    """Tests for the pure validation helpers."""

    def test_allow_list_size(self):
        assert len(ALLOWED_TYPES) == 19

    def test_pdf_with_matching_mime(self):
        assert validate_file_type(".pdf", "application/pdf") is True

    def test_case_insensitive(self):
        assert validate_file_type(".PDF", "Application/PDF") is True

    def test_exe_rejected(self):
        assert validate_file_type(".exe", "application/x-msdownload") is False

    def test_mime_mismatch_rejected(self):
        assert validate_file_type(".pdf", "image/png") is False

    @pytest.mark.parametrize("size, expected", [(0, False), (1, True), (100, True), (101, False)])
    def test_size_bounds(self, size, expected):
        assert validate_file_size(size, 100) is expected


class TestStorage:
    """Tests for the local disk storage."""

    def test_save_and_delete(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        assert storage.save("a.pdf", io.BytesIO(b"12345"), max_bytes=10) == 5
        assert storage.exists("a.pdf")
        assert storage.delete("a.pdf") is True
        assert not storage.exists("a.pdf")

    def test_oversized_stream_is_removed(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        with pytest.raises(FileTooLargeError):
            storage.save("big.pdf", io.BytesIO(b"x" * 11), max_bytes=10)
        assert not storage.exists("big.pdf")

    def test_path_like_names_rejected(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        with pytest.raises(ValueError):
            storage.path_for("../escape.pdf")


class TestUpload:
    """Tests for the upload endpoint."""

    def test_upload_pdf(self, client, admin_user, admin_token):
        response = upload(client, admin_token, description="Annual report", category="Reports")
        assert response.status_code == 201
        data = response.json()
        assert data["fileName"] == "report.pdf"
        assert data["fileType"] == "application/pdf"
        assert data["fileExtension"] == ".pdf"
        assert data["fileSizeBytes"] == len(PDF_BYTES)
        assert data["uploadedBy"] == admin_user.id
        assert data["uploaderName"] == "Admin User"
        assert data["category"] == "Reports"
        assert data["downloadCount"] == 0

    def test_stored_name_is_random(self, client, db_session, admin_token):
        upload(client, admin_token)
        upload(client, admin_token)
        stored = [f.stored_file_name for f in db_session.query(models.UploadedFile).all()]
        assert len(set(stored)) == 2
        assert all(name.endswith(".pdf") and name != "report.pdf" for name in stored)

    def test_exe_rejected(self, client, db_session, admin_token):
        response = upload(client, admin_token, name="setup.exe", content=b"MZ", mime="application/x-msdownload")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"
        assert db_session.query(models.UploadedFile).count() == 0

    def test_mime_mismatch_rejected(self, client, admin_token):
        response = upload(client, admin_token, name="photo.png", mime="application/pdf")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"

    def test_empty_file_rejected(self, client, admin_token):
        response = upload(client, admin_token, content=b"")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NO_FILE"

    def test_regular_user_cannot_upload(self, client, regular_token):
        response = upload(client, regular_token)
        assert response.status_code == 403


class TestFileMetadata:
    """Tests for listing, reading, updating and deleting files."""

    @pytest.fixture
    def uploaded(self, client, admin_token):
        return upload(client, admin_token, category="Reports").json()

    def test_list_and_filter(self, client, admin_token, regular_token, uploaded):
        upload(client, admin_token, name="logo.png", mime="image/png", category="Branding")

        response = client.get(f"{API}/files", headers=get_auth_header(regular_token))
        assert response.json()["pagination"]["totalItems"] == 2

        response = client.get(f"{API}/files?category=Reports", headers=get_auth_header(regular_token))
        assert [f["id"] for f in response.json()["data"]] == [uploaded["id"]]

    def test_categories(self, client, admin_token, regular_token, uploaded):
        upload(client, admin_token, name="logo.png", mime="image/png", category="Branding")
        upload(client, admin_token)

        response = client.get(f"{API}/files/categories", headers=get_auth_header(regular_token))
        assert response.json() == {"categories": ["Branding", "Reports"]}

    def test_update_metadata(self, client, admin_token, uploaded):
        response = client.put(
            f"{API}/files/{uploaded['id']}",
            json={"description": "Updated", "category": "Archive"},
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 200
        assert response.json()["description"] == "Updated"
        assert response.json()["category"] == "Archive"

    def test_download_counts(self, client, regular_token, uploaded):
        response = client.get(f"{API}/files/{uploaded['id']}/download", headers=get_auth_header(regular_token))
        assert response.status_code == 200
        assert response.content == PDF_BYTES
        assert "report.pdf" in response.headers["content-disposition"]

        meta = client.get(f"{API}/files/{uploaded['id']}", headers=get_auth_header(regular_token)).json()
        assert meta["downloadCount"] == 1

    def test_download_missing_on_disk(self, client, db_session, regular_token, uploaded):
        record = db_session.get(models.UploadedFile, uploaded["id"])
        get_storage().delete(record.stored_file_name)
        response = client.get(f"{API}/files/{uploaded['id']}/download", headers=get_auth_header(regular_token))
        assert response.status_code == 404

    def test_delete_removes_disk_file(self, client, db_session, admin_token, uploaded):
        stored_name = db_session.get(models.UploadedFile, uploaded["id"]).stored_file_name
        response = client.delete(f"{API}/files/{uploaded['id']}", headers=get_auth_header(admin_token))
        assert response.status_code == 204
        assert not get_storage().exists(stored_name)
        assert db_session.query(models.UploadedFile).count() == 0
