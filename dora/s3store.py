"""Object storage in an S3 bucket, signed with AWS Signature Version 4."""

from __future__ import annotations

import hashlib
import hmac
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timezone

_ALGORITHM = "AWS4-HMAC-SHA256"
_TIMEOUT = 30


class S3Error(Exception):
    """An upload or download failed."""


class S3Store:
    """Puts and gets whole objects in one bucket."""

    def __init__(self, access_key: str, secret_key: str, region: str, bucket: str) -> None:
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region
        self._bucket = bucket
        self._host = f"{bucket}.s3.{region}.amazonaws.com"

    def upload(self, key: str, data: bytes) -> None:
        try:
            self._send("PUT", key, bytes(data))
        except OSError as exc:
            raise S3Error(f"could not upload '{key}' to s3: {exc}") from exc

    def download(self, key: str) -> bytes:
        try:
            return self._send("GET", key, b"")
        except OSError as exc:
            raise S3Error(f"could not download '{key}' from s3: {exc}") from exc

    def _signing_key(self, date_stamp: str) -> bytes:
        key = ("AWS4" + self._secret_key).encode()
        for part in (date_stamp, self._region, "s3", "aws4_request"):
            key = hmac.new(key, part.encode(), hashlib.sha256).digest()
        return key

    def _send(self, method: str, key: str, body: bytes) -> bytes:
        now = datetime.now(timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now.strftime("%Y%m%d")
        payload_hash = hashlib.sha256(body).hexdigest()
        path = "/" + urllib.parse.quote(key, safe="/-_.~")

        headers = {
            "host": self._host,
            "x-amz-content-sha256": payload_hash,
            "x-amz-date": amz_date,
        }
        names = sorted(headers)
        signed_headers = ";".join(names)
        canonical_headers = "".join(f"{name}:{headers[name]}\n" for name in names)
        canonical_request = "\n".join(
            [method, path, "", canonical_headers, signed_headers, payload_hash]
        )
        scope = f"{date_stamp}/{self._region}/s3/aws4_request"
        string_to_sign = "\n".join(
            [_ALGORITHM, amz_date, scope, hashlib.sha256(canonical_request.encode()).hexdigest()]
        )
        signature = hmac.new(
            self._signing_key(date_stamp), string_to_sign.encode(), hashlib.sha256
        ).hexdigest()

        request = urllib.request.Request(
            f"https://{self._host}{path}",
            data=body if method == "PUT" else None,
            method=method,
        )
        for name, value in headers.items():
            request.add_header(name, value)
        request.add_header(
            "Authorization",
            f"{_ALGORITHM} Credential={self._access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}",
        )
        with urllib.request.urlopen(request, timeout=_TIMEOUT) as response:
            return response.read()