"""Tests for attachment reconciliation and purge."""
import asyncio

import pytest

from diary.attachments import AttachmentSet, Pending, Persisted
from diary.errors import AttachmentUploadError, BackendUnavailable, DecodeError, IndexOutOfRange
from diary.paths import build_access_url, build_path
from conftest import make_image

UID = "uid-1"
DAY = "2024-04-05"


def persisted_urls(n, base="https://storage.example.com"):
    return [build_access_url(base, "bucket", build_path(UID, DAY, i)) for i in range(n)]


def pending_files(n):
    return [Pending(filename=f"photo{i}.jpg", content=make_image(32, 32)) for i in range(n)]


@pytest.mark.parametrize(
    "persisted,pending,incoming",
    [(0, 0, 3), (0, 0, 7), (3, 0, 4), (2, 2, 1), (5, 0, 2), (0, 5, 1), (1, 1, 0)],
)
def test_add_pending_admits_up_to_available_slots(persisted, pending, incoming):
    attachments = AttachmentSet()
    attachments.load_persisted(persisted_urls(persisted))
    attachments.add_pending(pending_files(pending))

    result = attachments.add_pending(pending_files(incoming))

    available = 5 - persisted - pending
    assert result.admitted == min(available, incoming)
    assert result.rejected == incoming - result.admitted
    assert len(attachments) <= 5


def test_add_pending_keeps_input_order():
    attachments = AttachmentSet()
    files = pending_files(7)
    attachments.add_pending(files)
    assert attachments.items == files[:5]


def test_load_persisted_replaces_content():
    attachments = AttachmentSet()
    attachments.add_pending(pending_files(2))
    urls = persisted_urls(2)
    attachments.load_persisted(urls)
    assert attachments.items == [Persisted(u) for u in urls]


def test_remove_at_works_for_both_variants():
    attachments = AttachmentSet()
    attachments.load_persisted(persisted_urls(2))
    attachments.add_pending(pending_files(2))

    removed = attachments.remove_at(0)
    assert isinstance(removed, Persisted)
    removed = attachments.remove_at(2)
    assert isinstance(removed, Pending)
    assert attachments.count == 2


@pytest.mark.parametrize("index", [-1, 3, 10])
def test_remove_at_invalid_index(index):
    attachments = AttachmentSet()
    attachments.load_persisted(persisted_urls(3))
    with pytest.raises(IndexOutOfRange):
        attachments.remove_at(index)
    assert attachments.count == 3


def test_reconcile_without_pending_returns_persisted_unchanged(fake_backend):
    attachments = AttachmentSet()
    urls = persisted_urls(3)
    attachments.load_persisted(urls)

    result = asyncio.run(attachments.reconcile(fake_backend, UID, DAY))

    assert result == urls
    assert fake_backend.uploads == []


def test_reconcile_uploads_only_new_files_after_persisted(fake_backend):
    """3 persisted + 4 new → 2 admitted, uploaded to _3 and _4."""
    attachments = AttachmentSet()
    urls = persisted_urls(3)
    attachments.load_persisted(urls)
    result = attachments.add_pending(pending_files(4))
    assert (result.admitted, result.rejected) == (2, 2)

    progress = []
    out = asyncio.run(
        attachments.reconcile(fake_backend, UID, DAY, on_progress=lambda d, t: progress.append((d, t)))
    )

    assert fake_backend.uploads == [
        f"users/{UID}/images/{DAY}_3.jpg",
        f"users/{UID}/images/{DAY}_4.jpg",
    ]
    assert out[:3] == urls
    assert out[3:] == [fake_backend.url_for(p) for p in fake_backend.uploads]
    assert progress == [(1, 2), (2, 2)]


def test_reconcile_failure_reports_position_and_keeps_pending(fake_backend):
    attachments = AttachmentSet()
    attachments.load_persisted(persisted_urls(1))
    attachments.add_pending(pending_files(3))
    before = attachments.items
    fake_backend.fail_upload_calls = {2}

    with pytest.raises(AttachmentUploadError) as excinfo:
        asyncio.run(attachments.reconcile(fake_backend, UID, DAY))

    assert excinfo.value.position == 2
    assert isinstance(excinfo.value.cause, BackendUnavailable)
    # third upload never attempted, first one is not rolled back
    assert len(fake_backend.uploads) == 2
    assert f"users/{UID}/images/{DAY}_1.jpg" in fake_backend.objects
    assert attachments.items == before

    # retry re-attempts every pending item
    fake_backend.fail_upload_calls = set()
    fake_backend.uploads.clear()
    out = asyncio.run(attachments.reconcile(fake_backend, UID, DAY))
    assert len(fake_backend.uploads) == 3
    assert len(out) == 4


def test_reconcile_decode_error_aborts_with_position(fake_backend):
    attachments = AttachmentSet()
    attachments.add_pending([pending_files(1)[0], Pending("broken.jpg", b"garbage")])

    with pytest.raises(AttachmentUploadError) as excinfo:
        asyncio.run(attachments.reconcile(fake_backend, UID, DAY))

    assert excinfo.value.position == 2
    assert isinstance(excinfo.value.cause, DecodeError)
    assert fake_backend.uploads == [f"users/{UID}/images/{DAY}_0.jpg"]


def test_purge_skips_unparseable_and_swallows_failures(fake_backend):
    urls = persisted_urls(3)
    attachments = AttachmentSet()
    attachments.load_persisted([urls[0], "https://cdn.example.com/legacy/cat.jpg", urls[2]])
    attachments.add_pending(pending_files(1))
    fake_backend.fail_delete_paths = {build_path(UID, DAY, 2)}

    deleted = asyncio.run(attachments.purge(fake_backend))

    assert deleted == 1
    assert fake_backend.deleted_objects == [build_path(UID, DAY, 0)]


def test_reconcile_skips_indexes_of_remaining_persisted(fake_backend):
    """Removing an earlier persisted image must not make a new upload reuse a live path."""
    attachments = AttachmentSet()
    urls = persisted_urls(3)
    attachments.load_persisted(urls)
    attachments.remove_at(0)
    attachments.add_pending(pending_files(2))

    out = asyncio.run(attachments.reconcile(fake_backend, UID, DAY))

    assert fake_backend.uploads == [
        f"users/{UID}/images/{DAY}_3.jpg",
        f"users/{UID}/images/{DAY}_4.jpg",
    ]
    assert out[:2] == urls[1:]
    assert len(set(out)) == 4


def test_load_persisted_keeps_urls_beyond_limit():
    attachments = AttachmentSet(limit=2)
    urls = persisted_urls(4)
    attachments.load_persisted(urls)

    assert attachments.items == [Persisted(u) for u in urls]
    result = attachments.add_pending(pending_files(1))
    assert (result.admitted, result.rejected) == (0, 1)
