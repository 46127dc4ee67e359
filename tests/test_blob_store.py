import threading

import pytest

from app.core.blob_store import FirebaseBlobStore, submission_blob_path, validate_upload
from app.core.exceptions import StorageError, ValidationError

ALLOWED = (".pdf", ".doc", ".docx", ".txt", ".jpg", ".jpeg", ".png")


class FakeBlob:

    def __init__(self, bucket, path):
        self.bucket = bucket
        self.path = path
        self.metadata = None

    def upload_from_string(self, data, content_type=None):
        self.bucket.calls.append(("upload", self.path, threading.get_ident()))
        if self.bucket.fail:
            raise RuntimeError("bucket unavailable")
        self.bucket.objects[self.path] = (data, content_type, self.metadata)

    def delete(self):
        self.bucket.calls.append(("delete", self.path, threading.get_ident()))
        if self.bucket.fail:
            raise RuntimeError("bucket unavailable")
        self.bucket.objects.pop(self.path)


class FakeBucket:

    def __init__(self, fail=False):
        self.fail = fail
        self.objects = {}
        self.calls = []

    def blob(self, path):
        return FakeBlob(self, path)


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def store(bucket, monkeypatch):
    store = FirebaseBlobStore("portal.appspot.com")
    monkeypatch.setattr(store, "_bucket", lambda: bucket)
    return store


async def test_upload_runs_off_the_event_loop_thread(store, bucket):
    url = await store.upload("submissions/s1/a1/1_answer.pdf", b"%PDF", "application/pdf")

    data, content_type, metadata = bucket.objects["submissions/s1/a1/1_answer.pdf"]
    assert data == b"%PDF"
    assert content_type == "application/pdf"
    assert url.startswith(
        "https://firebasestorage.googleapis.com/v0/b/portal.appspot.com/o/submissions%2Fs1%2Fa1%2F1_answer.pdf"
    )
    assert url.endswith(f"token={metadata['firebaseStorageDownloadTokens']}")

    await store.delete("submissions/s1/a1/1_answer.pdf")
    assert bucket.objects == {}

    loop_thread = threading.get_ident()
    assert all(thread != loop_thread for _, _, thread in bucket.calls)


async def test_bucket_failures_become_storage_errors(monkeypatch):
    store = FirebaseBlobStore("portal.appspot.com")
    monkeypatch.setattr(store, "_bucket", lambda: FakeBucket(fail=True))

    with pytest.raises(StorageError):
        await store.upload("submissions/s1/a1/1_answer.pdf", b"%PDF", "application/pdf")

    with pytest.raises(StorageError):
        await store.delete("submissions/s1/a1/1_answer.pdf")


def test_submission_path_keeps_only_the_base_name():
    path = submission_blob_path("stu", "asg", "../../etc/answer.pdf", 1700000000000)
    assert path == "submissions/stu/asg/1700000000000_answer.pdf"


@pytest.mark.parametrize("name", ["REPORT.PDF", "photo.jpeg", "notes.txt"])
def test_allowed_extensions_are_case_insensitive(name):
    validate_upload(name, 100, ALLOWED, 10 * 1024 * 1024)


def test_upload_validation_rejects_bad_files():
    with pytest.raises(ValidationError):
        validate_upload("setup.exe", 100, ALLOWED, 10 * 1024 * 1024)
    with pytest.raises(ValidationError):
        validate_upload("answer.pdf", 10 * 1024 * 1024 + 1, ALLOWED, 10 * 1024 * 1024)
