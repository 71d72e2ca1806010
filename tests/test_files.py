# =============================================================================
# tests/test_files.py - File Library Tests
# =============================================================================
# Metadata CRUD, Storage upload/removal, bulk actions and CSV/JSON
# import/export.
#
# Run with: pytest tests/test_files.py -v
# =============================================================================

from unittest.mock import patch

import pytest

from app.config import settings
from app.exceptions import (
    FileTooLargeError,
    InvalidRequestError,
    ResourceNotFoundError,
    StorageUploadError,
)
from core.services import cache_service
from core.services.file_library_service import (
    FileLibraryService,
    merge_tags,
    parse_csv_records,
    parse_json_records,
    records_to_csv,
    split_tags,
)
from core.services.storage_service import build_storage_path
from lib.supabase_client import SupabaseClientError
from tests.conftest import OTHER_USER_ID, USER_ID

F_LOGO = "f0000000-0000-4000-8000-000000000001"
F_DECK = "f0000000-0000-4000-8000-000000000002"
F_OLD = "f0000000-0000-4000-8000-000000000003"
F_OTHER = "f0000000-0000-4000-8000-000000000004"


@pytest.fixture
def files(fake_db):
    return fake_db.seed("file_library", [
        {"id": F_LOGO, "user_id": USER_ID, "title": "Logo", "description": "Primary brand mark",
         "file_type": "png", "tags": ["brand"], "status": "active",
         "storage_path": f"{USER_ID}/abc-logo.png", "updated_at": "2024-01-03T00:00:00+00:00"},
        {"id": F_DECK, "user_id": USER_ID, "title": "Pitch deck", "description": None,
         "file_type": "pdf", "tags": ["sales", "brand"], "status": "active",
         "storage_path": None, "updated_at": "2024-01-02T00:00:00+00:00"},
        {"id": F_OLD, "user_id": USER_ID, "title": "Old logo", "file_type": "png",
         "tags": [], "status": "archived", "updated_at": "2024-01-01T00:00:00+00:00"},
        {"id": F_OTHER, "user_id": OTHER_USER_ID, "title": "Logo", "file_type": "png",
         "tags": ["brand"], "status": "active", "storage_path": f"{OTHER_USER_ID}/x-logo.png"},
    ])


def _row(fake_db, file_id):
    return next(row for row in fake_db.rows("file_library") if row["id"] == file_id)


# =============================================================================
# Helpers
# =============================================================================

class TestTagHelpers:

    def test_merge_keeps_order_and_skips_duplicates(self):
        assert merge_tags(["a", "b"], ["b", " c ", "", "a"]) == ["a", "b", "c"]

    def test_merge_into_nothing(self):
        assert merge_tags(None, ["x"]) == ["x"]

    def test_split_on_any_separator(self):
        assert split_tags("Brand; Logo|summer , ") == ["brand", "logo", "summer"]


class TestCsv:

    def test_export_quotes_and_joins_tags(self):
        csv_text = records_to_csv([{
            "title": "Logo",
            "description": 'Brand, "primary"',
            "file_name": "logo.png",
            "file_type": "png",
            "tags": ["brand", "logo"],
            "created_at": "2024-01-01",
            "updated_at": "2024-01-02",
            "storage_path": "ignored",
        }])

        header, line = csv_text.split("\n")
        assert header == "title,description,file_name,file_type,tags,created_at,updated_at"
        assert line == 'Logo,"Brand, ""primary""",logo.png,png,brand;logo,2024-01-01,2024-01-02'

    def test_export_empty(self):
        assert records_to_csv([]) == "title,description,file_name,file_type,tags,created_at,updated_at"

    def test_parse_skips_rows_without_title(self):
        records = parse_csv_records("title,tags\nLogo, brand|Logo\n,skip\n")

        assert records == [{
            "title": "Logo",
            "description": None,
            "file_name": "Logo",
            "file_type": None,
            "tags": ["brand", "logo"],
        }]

    def test_parse_falls_back_to_name_and_type(self):
        records = parse_csv_records("name,type\nbanner.png,image\n")

        assert records[0]["title"] == "banner.png"
        assert records[0]["file_name"] == "banner.png"
        assert records[0]["file_type"] == "image"

    def test_parse_quoted_commas(self):
        records = parse_csv_records('title,description\nDeck,"Q1, Q2 plans"\n')
        assert records[0]["description"] == "Q1, Q2 plans"

    def test_parse_empty_is_invalid(self):
        with pytest.raises(InvalidRequestError, match="Invalid CSV"):
            parse_csv_records("")


class TestJsonRecords:

    def test_object_or_array(self):
        assert parse_json_records({"title": "A"})[0]["title"] == "A"
        assert [r["title"] for r in parse_json_records('[{"title": "A"}, {"title": " "}, 3]')] == ["A"]

    def test_invalid_json(self):
        with pytest.raises(InvalidRequestError, match="Invalid JSON"):
            parse_json_records("{nope")


# =============================================================================
# Service
# =============================================================================

class TestListAndCrud:

    def test_list_defaults_to_active(self, files):
        found, total = FileLibraryService.list_files(USER_ID)

        assert total == 2
        assert [f["id"] for f in found] == [F_LOGO, F_DECK]

    def test_list_search_and_tag(self, files):
        found, _ = FileLibraryService.list_files(USER_ID, search="LOGO", status="all")
        assert {f["id"] for f in found} == {F_LOGO, F_OLD}

        found, _ = FileLibraryService.list_files(USER_ID, tag="sales")
        assert [f["id"] for f in found] == [F_DECK]

    def test_create_defaults(self, fake_db):
        created = FileLibraryService.create_file(USER_ID, {"title": " Guide "})

        assert created["title"] == "Guide"
        assert created["file_name"] == "Guide"
        assert created["status"] == "active"
        assert created["version"] == 1
        assert created["tags"] == []

    def test_get_foreign_file_is_not_found(self, files):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            FileLibraryService.get_file(F_OTHER, USER_ID)
        assert exc_info.value.code == "FILE_NOT_FOUND"

    def test_update_invalidates_caches(self, files):
        cache_service.dashboard_cache.set(cache_service.dashboard_key(USER_ID), {})

        updated = FileLibraryService.update_file(F_LOGO, USER_ID, {"status": "archived"})

        assert updated["status"] == "archived"
        assert len(cache_service.dashboard_cache) == 0

    def test_delete_removes_storage_object(self, fake_db, files):
        FileLibraryService.delete_file(F_LOGO, USER_ID)

        assert fake_db.storage.removed == [f"{USER_ID}/abc-logo.png"]
        assert F_LOGO not in {row["id"] for row in fake_db.rows("file_library")}


class TestUpload:

    def test_storage_path_is_user_prefixed_and_sanitized(self):
        path = build_storage_path(USER_ID, "my logo (final).png")

        prefix, name = path.split("/")
        assert prefix == USER_ID
        assert name.endswith("-my_logo_final_.png")

    def test_upload_stores_object_and_row(self, fake_db):
        created = FileLibraryService.upload_file(
            USER_ID, "logo.PNG", b"png-bytes", content_type="image/png", tags=["brand"]
        )

        assert created["file_type"] == "png"
        assert created["file_size"] == 9
        assert created["title"] == "logo.PNG"
        assert fake_db.storage.objects[created["storage_path"]] == b"png-bytes"

    def test_too_large(self, fake_db):
        with patch.object(settings, "MAX_UPLOAD_SIZE_MB", 1):
            with pytest.raises(FileTooLargeError):
                FileLibraryService.upload_file(USER_ID, "big.bin", b"x" * (1024 * 1024 + 1))

        assert fake_db.storage.objects == {}

    def test_storage_failure(self, fake_db):
        fake_db.storage.fail_uploads = True

        with pytest.raises(StorageUploadError):
            FileLibraryService.upload_file(USER_ID, "logo.png", b"abc")

        assert fake_db.rows("file_library") == []

    def test_row_failure_removes_uploaded_object(self, fake_db):
        fake_db.failing_tables.add("file_library")

        with pytest.raises(SupabaseClientError):
            FileLibraryService.upload_file(USER_ID, "logo.png", b"abc")

        assert len(fake_db.storage.removed) == 1
        assert fake_db.storage.objects == {}

    def test_signed_url(self, fake_db, files):
        result = FileLibraryService.get_signed_url(F_LOGO, USER_ID)

        assert result["url"].startswith("https://storage.test/")
        assert result["expires_in"] == settings.SIGNED_URL_EXPIRY_SECONDS
        assert _row(fake_db, F_LOGO)["last_used_at"]

    def test_signed_url_without_object(self, files):
        with pytest.raises(InvalidRequestError):
            FileLibraryService.get_signed_url(F_DECK, USER_ID)


class TestBulk:

    def test_bulk_delete_only_own(self, fake_db, files):
        deleted = FileLibraryService.bulk_delete([F_LOGO, F_DECK, F_OTHER], USER_ID)

        assert deleted == 2
        assert fake_db.storage.removed == [f"{USER_ID}/abc-logo.png"]
        assert {row["id"] for row in fake_db.rows("file_library")} == {F_OLD, F_OTHER}

    def test_bulk_tag_counts_changed_rows(self, fake_db, files):
        updated = FileLibraryService.bulk_tag([F_LOGO, F_DECK, F_OTHER], ["brand"], USER_ID)
        assert updated == 0

        updated = FileLibraryService.bulk_tag([F_LOGO, F_DECK], ["summer"], USER_ID)
        assert updated == 2
        assert _row(fake_db, F_DECK)["tags"] == ["sales", "brand", "summer"]
        assert _row(fake_db, F_OTHER)["tags"] == ["brand"]


class TestImportExport:

    def test_export_csv(self, files):
        result = FileLibraryService.export_files(USER_ID, "csv", ids=[F_DECK])

        assert result["format"] == "csv"
        assert result["data"].split("\n")[1].startswith("Pitch deck,,")

    def test_export_json(self, files):
        result = FileLibraryService.export_files(USER_ID)
        assert {row["id"] for row in result["data"]} == {F_LOGO, F_DECK, F_OLD}

    def test_import_csv(self, fake_db):
        ids = FileLibraryService.import_files(USER_ID, "csv", "title,tags\nA,x\nB,\n")

        assert len(ids) == 2
        rows = fake_db.rows("file_library")
        assert all(row["status"] == "active" and row["user_id"] == USER_ID for row in rows)

    @pytest.mark.parametrize("content", [None, "   "])
    def test_import_requires_content(self, fake_db, content):
        with pytest.raises(InvalidRequestError, match="content required"):
            FileLibraryService.import_files(USER_ID, "json", content)

    def test_import_without_titles(self, fake_db):
        with pytest.raises(InvalidRequestError, match="No valid records"):
            FileLibraryService.import_files(USER_ID, "json", [{"description": "no title"}])


# =============================================================================
# HTTP
# =============================================================================

class TestFileRoutes:

    def test_list(self, client, files):
        response = client.get("/api/v1/files", params={"file_type": "pdf"})

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_multipart_upload(self, client, fake_db):
        response = client.post(
            "/api/v1/files/upload",
            files={"file": ("logo.png", b"abc", "image/png")},
            data={"title": "Logo", "tags": "Brand;logo"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Logo"
        assert body["tags"] == ["brand", "logo"]
        assert body["storage_path"].startswith(f"{USER_ID}/")

    def test_import_route(self, client, fake_db):
        response = client.post("/api/v1/files/import", json={
            "format": "json",
            "content": [{"title": "A"}, {"title": "B", "tags": ["x"]}],
        })

        assert response.status_code == 200
        assert response.json()["imported"] == 2

    def test_import_nothing_is_400(self, client, fake_db):
        response = client.post("/api/v1/files/import", json={"format": "csv", "content": "title\n\n"})
        assert response.status_code == 400

    def test_patch_and_delete(self, client, files):
        response = client.patch(f"/api/v1/files/{F_DECK}", json={"tags": ["q1"]})
        assert response.json()["tags"] == ["q1"]

        assert client.delete(f"/api/v1/files/{F_DECK}").json() == {"success": True}
        assert client.get(f"/api/v1/files/{F_DECK}").status_code == 404

    def test_malformed_file_id_is_422(self, client, fake_db, files):
        assert client.get("/api/v1/files/f-deck").status_code == 422
        assert client.delete("/api/v1/files/f-deck").status_code == 422
        assert client.get("/api/v1/files/f-deck/signed-url").status_code == 422
        assert F_DECK in {row["id"] for row in fake_db.rows("file_library")}

    def test_bulk_delete_with_malformed_id_is_422(self, client, fake_db, files):
        response = client.post("/api/v1/files/bulk-delete", json={"ids": [F_LOGO, "f-deck"]})

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert fake_db.calls == []
