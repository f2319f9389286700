"""Tests for the file-backed backend."""
import asyncio

import pytest

from diary.backend import BackendError
from diary.models import EntryDocument
from diary.paths import build_path, extract_path
from diary.storage import user_id_for


def login(backend, identifier="alice@example.com", secret="wonderland"):
    return asyncio.run(backend.authenticate(identifier, secret))


def test_authenticate_derives_stable_user_id(local_backend):
    user = login(local_backend)
    assert user.user_id == user_id_for("alice@example.com")
    assert login(local_backend).user_id == user.user_id


def test_authenticate_rejects_bad_secret(local_backend):
    with pytest.raises(BackendError) as excinfo:
        login(local_backend, secret="nope")
    assert excinfo.value.code == "auth/invalid-credential"


def test_documents_require_sign_in(local_backend):
    uid = user_id_for("alice@example.com")
    with pytest.raises(BackendError) as excinfo:
        asyncio.run(local_backend.get_document(uid, "2024-04-05"))
    assert excinfo.value.code == "unauthenticated"


def test_put_get_delete_document(local_backend):
    uid = login(local_backend).user_id
    entry = EntryDocument(text="hello", mood=None, color=1, updated_at="2024-04-05T09:00:00+00:00")

    asyncio.run(local_backend.put_document(uid, "2024-04-05", entry))
    assert asyncio.run(local_backend.get_document(uid, "2024-04-05")) == entry

    asyncio.run(local_backend.delete_document(uid, "2024-04-05"))
    assert asyncio.run(local_backend.get_document(uid, "2024-04-05")) is None
    # deleting again is not an error
    asyncio.run(local_backend.delete_document(uid, "2024-04-05"))


def test_query_by_date_range(local_backend):
    uid = login(local_backend).user_id
    for day, color in [("2024-03-31", 1), ("2024-04-05", 2), ("2024-04-30", 4), ("2024-05-01", 3)]:
        asyncio.run(local_backend.put_document(uid, day, EntryDocument(text=day, color=color)))

    docs = asyncio.run(local_backend.query_documents_by_date_range(uid, "2024-04-01", "2024-04-31"))

    assert sorted(docs) == ["2024-04-05", "2024-04-30"]
    assert docs["2024-04-30"].color == 4


def test_upload_returns_access_url_that_encodes_path(local_backend):
    uid = login(local_backend).user_id
    path = build_path(uid, "2024-04-05", 0)

    url = asyncio.run(local_backend.upload_object(path, b"bytes"))

    assert url.startswith("http://testserver/v0/b/diary-local/o/")
    assert extract_path(url) == path
    assert local_backend.object_file(path).read_bytes() == b"bytes"

    asyncio.run(local_backend.delete_object(path))
    assert local_backend.object_file(path) is None


def test_upload_to_other_users_folder_is_unauthorized(local_backend):
    login(local_backend)
    other = user_id_for("bob@example.com")
    with pytest.raises(BackendError) as excinfo:
        asyncio.run(local_backend.upload_object(build_path(other, "2024-04-05", 0), b"x"))
    assert excinfo.value.code == "storage/unauthorized"


@pytest.mark.parametrize("path", ["../escape.jpg", "/etc/passwd", "users/../../x"])
def test_bad_object_paths_rejected(local_backend, path):
    with pytest.raises(BackendError):
        local_backend.object_file(path)
