import os
import tempfile
from io import BytesIO
from urllib.parse import quote

import pytest
from PIL import Image

# diary.main 은 import 시점에 설정을 읽으므로 먼저 환경변수를 지정합니다.
os.environ.setdefault("DIARY_DATA_DIR", tempfile.mkdtemp(prefix="diary-test-"))
os.environ.setdefault("DIARY_ACCOUNTS", "alice@example.com:wonderland")

from diary.backend import BackendError  # noqa: E402
from diary.models import EntryDocument, LoginInfo  # noqa: E402
from diary.storage import LocalBackend  # noqa: E402


def make_image(width: int, height: int, fmt: str = "JPEG") -> bytes:
    """Create an in-memory image of the given size."""
    mode = "RGBA" if fmt == "PNG" else "RGB"
    buf = BytesIO()
    Image.new(mode, (width, height), color=(200, 80, 40)).save(buf, format=fmt)
    return buf.getvalue()


class FakeBackend:
    """In-memory backend with failure injection."""

    bucket = "test-bucket"

    def __init__(self):
        self.documents = {}
        self.objects = {}
        self.uploads = []
        self.deleted_objects = []
        self.deleted_documents = []
        self.queries = []
        self.fail_upload_calls = set()   # 1-based upload call numbers that fail
        self.fail_delete_paths = set()
        self.fail_get = None
        self.fail_put = None
        self.fail_delete_document = None

    def url_for(self, path):
        return (
            f"https://firebasestorage.googleapis.com/v0/b/{self.bucket}/o/"
            f"{quote(path, safe='')}?alt=media&token=test"
        )

    async def authenticate(self, identifier, secret):
        return LoginInfo(user_id="uid-1", identifier=identifier)

    async def deauthenticate(self, user_id):
        return None

    async def get_document(self, user_id, date):
        if self.fail_get:
            raise self.fail_get
        return self.documents.get((user_id, date))

    async def put_document(self, user_id, date, entry):
        if self.fail_put:
            raise self.fail_put
        self.documents[(user_id, date)] = EntryDocument.model_validate(entry.to_document())

    async def delete_document(self, user_id, date):
        if self.fail_delete_document:
            raise self.fail_delete_document
        self.deleted_documents.append((user_id, date))
        self.documents.pop((user_id, date), None)

    async def query_documents_by_date_range(self, user_id, start, end):
        self.queries.append((user_id, start, end))
        return {
            d: doc
            for (uid, d), doc in sorted(self.documents.items())
            if uid == user_id and start <= d <= end
        }

    async def upload_object(self, path, content):
        call = len(self.uploads) + 1
        self.uploads.append(path)
        if call in self.fail_upload_calls:
            raise BackendError("unavailable", f"upload {call} dropped")
        self.objects[path] = content
        return self.url_for(path)

    async def delete_object(self, path):
        if path in self.fail_delete_paths:
            raise BackendError("storage/object-not-found", path)
        self.deleted_objects.append(path)
        self.objects.pop(path, None)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def local_backend(tmp_path):
    return LocalBackend(
        tmp_path / "data",
        accounts={"alice@example.com": "wonderland", "bob@example.com": "builder"},
        base_url="http://testserver",
        bucket="diary-local",
    )


@pytest.fixture
def small_jpeg():
    return make_image(64, 48)


@pytest.fixture
def wide_jpeg():
    return make_image(2048, 1000)
