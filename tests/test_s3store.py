import hashlib
import io
import re
import urllib.error
from unittest import mock

import pytest

from dora.s3store import S3Error, S3Store

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@pytest.fixture
def store():
    return S3Store(access_key="placeholder", secret_key="secret", region="eu-west-1", bucket="bucket-name")


class Recorder:
    def __init__(self, body=b""):
        self.body = body
        self.requests = []

    def __call__(self, request, timeout=None):
        self.requests.append((request, timeout))
        return io.BytesIO(self.body)


def test_download_returns_body(store):
    recorder = Recorder(b"object data")
    with mock.patch("urllib.request.urlopen", recorder):
        assert store.download("path/to/file.json") == b"object data"
    request, timeout = recorder.requests[0]
    assert request.get_method() == "GET"
    assert request.full_url == "https://bucket-name.s3.eu-west-1.amazonaws.com/path/to/file.json"
    assert timeout == 30


def test_download_signs_empty_payload(store):
    recorder = Recorder(b"payload")
    with mock.patch("urllib.request.urlopen", recorder):
        result = store.download("key")
    assert result == b"payload"
    request, _ = recorder.requests[0]
    assert request.get_header("X-amz-content-sha256") == EMPTY_SHA256


def test_upload_sends_body_and_payload_hash(store):
    data = b"some blob data"
    recorder = Recorder(data)
    with mock.patch("urllib.request.urlopen", recorder):
        store.upload("blobs/one", data)
        downloaded = store.download("blobs/one")
    assert downloaded == data
    put_request, _ = recorder.requests[0]
    get_request, _ = recorder.requests[1]
    assert put_request.get_method() == "PUT"
    assert put_request.data == data
    assert put_request.get_header("X-amz-content-sha256") == hashlib.sha256(data).hexdigest()
    assert get_request.full_url == put_request.full_url


def test_authorization_header_shape(store):
    recorder = Recorder(b"x")
    with mock.patch("urllib.request.urlopen", recorder):
        result = store.download("key")
    assert result == b"x"
    request, _ = recorder.requests[0]
    authorization = request.get_header("Authorization")
    amz_date = request.get_header("X-amz-date")
    match = re.fullmatch(
        r"AWS4-HMAC-SHA256 Credential=placeholder/(\d{8})/eu-west-1/s3/aws4_request, "
        r"SignedHeaders=host;x-amz-content-sha256;x-amz-date, Signature=([0-9a-f]{64})",
        authorization,
    )
    assert match is not None
    assert match.group(1) == amz_date[:8]


def test_key_is_percent_encoded(store):
    recorder = Recorder(b"spaced")
    with mock.patch("urllib.request.urlopen", recorder):
        result = store.download("dir/a b")
    assert result == b"spaced"
    request, _ = recorder.requests[0]
    assert request.full_url.endswith("/dir/a%20b")


def test_upload_failure_raises_s3_error(store):
    failing = mock.Mock(side_effect=urllib.error.URLError("unreachable"))
    with mock.patch("urllib.request.urlopen", failing):
        with pytest.raises(S3Error, match="could not upload 'k' to s3"):
            store.upload("k", b"data")


def test_download_failure_raises_s3_error(store):
    failing = mock.Mock(side_effect=TimeoutError("timed out"))
    with mock.patch("urllib.request.urlopen", failing):
        with pytest.raises(S3Error, match="could not download 'k' from s3"):
            store.download("k")