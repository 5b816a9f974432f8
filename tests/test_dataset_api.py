"""
tests/test_dataset_api.py

HTTP surface: authentication, multipart intake, download framing, admin
statistics and the ``{"error": ...}`` body shared by every failure.
"""

from __future__ import annotations

import importlib
import uuid
from collections.abc import Iterator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import app.api.errors as api_errors
import app.services.dataset_service as dataset_service_module
from app.api.routers.dataset_router import content_disposition
from app.main import create_app
from db.models.user import User, UserRole
from db.repositories.errors import PayloadTooLargeError
from db.repositories.validators import UploadPolicy

CSV_BYTES = b"station,rain_mm\nA,3.2\nB,0.0\n"


@pytest.fixture()
def client(database, scratch) -> Iterator[TestClient]:
    application = create_app(database=database, scratch_storage=scratch, enable_scheduler=False)
    with TestClient(application) as test_client:
        yield test_client


@pytest.fixture()
def owner(make_user):
    return make_user(name="Owner")


@pytest.fixture()
def admin(make_user):
    return make_user(role=UserRole.ADMIN, name="Admin")


def _create(client: TestClient, headers: dict[str, str], *, content: bytes | None = CSV_BYTES, **fields: str):
    data = {"title": "Rainfall", "description": "Daily rainfall", "type": "csv", **fields}
    files = {"file": ("rain.csv", content, "text/csv")} if content is not None else None
    return client.post("/datasets", data=data, files=files, headers=headers)


# ---------------------------------------------------------------------------
# Auth and errors
# ---------------------------------------------------------------------------


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_missing_token_is_unauthorized(client) -> None:
    response = client.get("/datasets")

    assert response.status_code == 401
    assert "error" in response.json()


def test_token_for_unknown_user_is_unauthorized(client, auth_headers) -> None:
    ghost = User(id=uuid.uuid4(), name="Ghost", username="ghost", email="ghost@example.com")

    response = client.get("/datasets", headers=auth_headers(ghost))

    assert response.status_code == 401


def test_tampered_token_is_unauthorized(client) -> None:
    response = client.get("/datasets", headers={"Authorization": "Bearer not.a.jwt"})

    assert response.status_code == 401
    assert response.json() == {"error": "Authentication failed"}


def test_admin_routes_reject_regular_users(client, owner, auth_headers) -> None:
    for path in ("/datasets/stats", "/datasets/downloads/history", "/datasets/downloads/stats"):
        response = client.get(path, headers=auth_headers(owner))
        assert response.status_code == 403, path
        assert response.json() == {"error": "Admin privileges required to access this route"}


@pytest.mark.filterwarnings("error::DeprecationWarning")
def test_error_mapping_uses_current_status_codes() -> None:
    module = importlib.reload(api_errors)

    assert module.to_http_error(PayloadTooLargeError("too big")).status_code == 413


def test_malformed_path_parameter_is_bad_request(client, owner, auth_headers) -> None:
    response = client.get("/datasets/user/not-a-uuid", headers=auth_headers(owner))

    assert response.status_code == 400
    assert "error" in response.json()


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


def test_create_returns_metadata_without_bytes(client, owner, auth_headers) -> None:
    response = _create(client, auth_headers(owner))

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Rainfall"
    assert body["size"] == len(CSV_BYTES)
    assert body["downloads"] == 0
    assert body["file_name"] == "rain.csv"
    assert body["file_content_type"] == "text/csv"
    assert body["file_id"]
    assert body["owner"]["name"] == "Owner"
    assert "file_content" not in body


def test_create_without_file(client, owner, auth_headers) -> None:
    response = _create(client, auth_headers(owner), content=None)

    assert response.status_code == 201
    assert response.json()["file_id"] is None
    assert response.json()["size"] == 0


def test_create_missing_fields_is_bad_request(client, owner, auth_headers) -> None:
    response = client.post(
        "/datasets",
        data={"title": "Only a title"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Title, description, and type are required."}


def test_create_disallowed_type_is_bad_request(client, owner, auth_headers) -> None:
    response = client.post(
        "/datasets",
        data={"title": "t", "description": "d", "type": "bin"},
        files={"file": ("tool", b"\x7fELF", "application/x-executable")},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400
    assert "application/x-executable" in response.json()["error"]


def test_create_over_ceiling_is_payload_too_large(client, owner, auth_headers, monkeypatch) -> None:
    monkeypatch.setattr(
        dataset_service_module,
        "DATASET_UPLOAD_POLICY",
        UploadPolicy(name="dataset", max_bytes=8, allowed_content_types=frozenset({"text/csv"})),
    )

    response = _create(client, auth_headers(owner))

    assert response.status_code == 413
    assert "error" in response.json()
    assert client.get("/datasets", headers=auth_headers(owner)).json() == []


def test_create_with_empty_file_round_trips(client, owner, auth_headers) -> None:
    created = _create(client, auth_headers(owner), content=b"")

    assert created.status_code == 201
    body = created.json()
    assert body["size"] == 0
    assert body["file_id"]
    assert body["file_name"] == "rain.csv"

    response = client.get(f"/datasets/{body['id']}/download")

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["content-length"] == "0"


def test_storage_failure_on_create_is_server_error(client, owner, scratch, auth_headers, failing_commit) -> None:
    failing_commit()

    response = _create(client, auth_headers(owner))

    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}
    assert list(scratch.root_dir.iterdir()) == []
    assert client.get("/datasets", headers=auth_headers(owner)).json() == []


def test_storage_failure_on_update_is_server_error(client, owner, scratch, auth_headers, failing_commit) -> None:
    created = _create(client, auth_headers(owner)).json()
    failing_commit()

    response = client.put(
        f"/datasets/{created['id']}",
        data={"title": "Replaced"},
        files={"file": ("new.csv", b"x,y\n", "text/csv")},
        headers=auth_headers(owner),
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}
    assert list(scratch.root_dir.iterdir()) == []
    fetched = client.get(f"/datasets/{created['id']}", headers=auth_headers(owner)).json()
    assert fetched["title"] == "Rainfall"
    assert fetched["file_id"] == created["file_id"]
    assert fetched["size"] == len(CSV_BYTES)


def test_list_and_get(client, owner, auth_headers) -> None:
    created = _create(client, auth_headers(owner)).json()

    listed = client.get("/datasets", headers=auth_headers(owner))
    fetched = client.get(f"/datasets/{created['id']}", headers=auth_headers(owner))

    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()] == [created["id"]]
    assert fetched.status_code == 200
    assert fetched.json()["id"] == created["id"]


@pytest.mark.parametrize("dataset_id", [str(uuid.uuid4()), "abc"])
def test_get_unknown_dataset_is_not_found(client, owner, auth_headers, dataset_id) -> None:
    response = client.get(f"/datasets/{dataset_id}", headers=auth_headers(owner))

    assert response.status_code == 404
    assert response.json() == {"error": "Dataset not found"}


def test_user_datasets_are_private_to_owner_and_admin(client, owner, admin, make_user, auth_headers) -> None:
    _create(client, auth_headers(owner))
    stranger = make_user()

    own = client.get(f"/datasets/user/{owner.id}", headers=auth_headers(owner))
    as_admin = client.get(f"/datasets/user/{owner.id}", headers=auth_headers(admin))
    as_stranger = client.get(f"/datasets/user/{owner.id}", headers=auth_headers(stranger))

    assert len(own.json()) == 1
    assert len(as_admin.json()) == 1
    assert as_stranger.status_code == 403


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def test_update_is_partial(client, owner, auth_headers) -> None:
    created = _create(client, auth_headers(owner)).json()

    response = client.put(
        f"/datasets/{created['id']}",
        data={"title": "Rainfall (revised)"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Rainfall (revised)"
    assert body["description"] == "Daily rainfall"
    assert body["file_id"] == created["file_id"]


def test_update_by_stranger_is_forbidden_and_changes_nothing(client, owner, make_user, auth_headers) -> None:
    created = _create(client, auth_headers(owner)).json()
    stranger = make_user()

    response = client.put(
        f"/datasets/{created['id']}",
        data={"title": "Mine now"},
        files={"file": ("evil.csv", b"x,y\n", "text/csv")},
        headers=auth_headers(stranger),
    )

    assert response.status_code == 403
    assert response.json() == {"error": "User not authorized to update this dataset"}
    fetched = client.get(f"/datasets/{created['id']}", headers=auth_headers(owner)).json()
    assert fetched["title"] == "Rainfall"
    assert fetched["file_id"] == created["file_id"]


def test_delete_is_admin_only(client, owner, admin, auth_headers) -> None:
    created = _create(client, auth_headers(owner)).json()

    denied = client.delete(f"/datasets/{created['id']}", headers=auth_headers(owner))
    deleted = client.delete(f"/datasets/{created['id']}", headers=auth_headers(admin))
    again = client.delete(f"/datasets/{created['id']}", headers=auth_headers(admin))

    assert denied.status_code == 403
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Dataset deleted successfully"}
    assert again.status_code == 404


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


def test_download_round_trip_and_headers(client, owner, admin, auth_headers) -> None:
    created = _create(client, auth_headers(owner)).json()

    response = client.get(f"/datasets/{created['id']}/download")

    assert response.status_code == 200
    assert response.content == CSV_BYTES
    assert response.headers["content-length"] == str(len(CSV_BYTES))
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="rain.csv"'

    fetched = client.get(f"/datasets/{created['id']}", headers=auth_headers(owner)).json()
    assert fetched["downloads"] == 1


def test_download_without_file_counts_attempt(client, owner, auth_headers) -> None:
    created = _create(client, auth_headers(owner), content=None).json()

    response = client.get(f"/datasets/{created['id']}/download")

    assert response.status_code == 404
    assert response.json() == {"error": "No file associated with this dataset"}
    fetched = client.get(f"/datasets/{created['id']}", headers=auth_headers(owner)).json()
    assert fetched["downloads"] == 1


def test_download_unknown_dataset(client) -> None:
    response = client.get(f"/datasets/{uuid.uuid4()}/download")

    assert response.status_code == 404
    assert response.json() == {"error": "Dataset not found"}


def test_content_disposition_for_non_ascii_names() -> None:
    header = content_disposition('données "v2".csv')

    assert header.startswith('attachment; filename="donn?es \\"v2\\".csv"')
    assert "filename*=UTF-8''donn%C3%A9es%20%22v2%22.csv" in header


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def test_stats_history_and_detail(client, owner, admin, auth_headers) -> None:
    first = _create(client, auth_headers(owner)).json()
    second = _create(client, auth_headers(owner), content=b"{}", title="Config").json()
    client.get(f"/datasets/{first['id']}/download", params={"userId": str(owner.id)})
    client.get(f"/datasets/{first['id']}/download")
    client.get(f"/datasets/{second['id']}/download")

    stats = client.get("/datasets/stats", headers=auth_headers(admin))
    history = client.get("/datasets/downloads/history", headers=auth_headers(admin))
    detail = client.get("/datasets/downloads/stats", headers=auth_headers(admin))

    assert stats.status_code == 200
    assert stats.json() == {"downloads": 3, "storage": len(CSV_BYTES) + 2}

    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    assert history.json() == [{"date": today, "downloads": 3}]

    body = detail.json()
    assert body["total_downloads"] == 3
    assert body["unique_users"] == 1
    assert body["unique_datasets"] == 2
    assert body["most_downloaded"][0]["id"] == first["id"]
    assert len(body["recent_downloads"]) == 3


# ---------------------------------------------------------------------------
# Profile image
# ---------------------------------------------------------------------------

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_profile_image_is_stored_as_data_uri(client, owner, auth_headers) -> None:
    response = client.post(
        f"/users/{owner.id}/profile-image",
        files={"profile_image": ("me.png", PNG_BYTES, "image/png")},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    assert response.json()["profile_image"].startswith("data:image/png;base64,")


def test_profile_image_rejects_non_images(client, owner, auth_headers) -> None:
    response = client.post(
        f"/users/{owner.id}/profile-image",
        files={"profile_image": ("me.txt", b"hello", "text/plain")},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400


def test_profile_image_of_another_user_is_forbidden(client, owner, make_user, auth_headers) -> None:
    stranger = make_user()

    response = client.post(
        f"/users/{owner.id}/profile-image",
        files={"profile_image": ("me.png", PNG_BYTES, "image/png")},
        headers=auth_headers(stranger),
    )

    assert response.status_code == 403


def test_profile_image_requires_a_file(client, owner, auth_headers) -> None:
    response = client.post(f"/users/{owner.id}/profile-image", headers=auth_headers(owner))

    assert response.status_code == 400
    assert response.json() == {"error": "No image file provided"}
