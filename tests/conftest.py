# SPDX-License-Identifier: MIT
"""Shared pytest fixtures for filestore tests."""

import io
import pathlib

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from filestore.storage.local import FSVolumeDriver
from filestore.storage.s3 import S3VolumeDriver

TEST_BUCKET = "test-bucket"


def client_error(code: str, status: int, operation: str, message: str = "") -> ClientError:
    """Build a botocore ClientError shaped like a real S3 error response."""
    return ClientError(
        {"Error": {"Code": code, "Message": message or code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client.

    Implements the subset of calls the S3 driver makes and raises the same
    ``ClientError`` codes S3 does.  Every call is recorded in ``calls``.
    """

    def __init__(self, buckets=(TEST_BUCKET,), page_size: int | None = None):
        self.buckets: dict[str, dict[str, bytes]] = {name: {} for name in buckets}
        self.page_size = page_size
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def _objects(self, bucket: str, operation: str) -> dict[str, bytes]:
        if bucket not in self.buckets:
            raise client_error("NoSuchBucket", 404, operation, "The specified bucket does not exist")
        return self.buckets[bucket]

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Callback=None, Config=None):
        self.calls.append(("upload_fileobj", {"Bucket": Bucket, "Key": Key, "ExtraArgs": ExtraArgs}))
        self._objects(Bucket, "PutObject")[Key] = Fileobj.read()

    def head_object(self, Bucket, Key, **kwargs):
        self.calls.append(("head_object", {"Bucket": Bucket, "Key": Key, **kwargs}))
        objects = self._objects(Bucket, "HeadObject")
        if Key not in objects:
            raise client_error("404", 404, "HeadObject", "Not Found")
        return {"ContentLength": len(objects[Key]), "ResponseMetadata": {"HTTPStatusCode": 200}}

    def get_object(self, Bucket, Key, **kwargs):
        self.calls.append(("get_object", {"Bucket": Bucket, "Key": Key, **kwargs}))
        objects = self._objects(Bucket, "GetObject")
        if Key not in objects:
            raise client_error("NoSuchKey", 404, "GetObject", "The specified key does not exist.")
        data = objects[Key]
        return {
            "Body": StreamingBody(io.BytesIO(data), len(data)),
            "ContentLength": len(data),
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }

    def copy_object(self, Bucket, Key, CopySource, **kwargs):
        self.calls.append(("copy_object", {"Bucket": Bucket, "Key": Key, "CopySource": CopySource, **kwargs}))
        source = self._objects(CopySource["Bucket"], "CopyObject")
        target = self._objects(Bucket, "CopyObject")
        if CopySource["Key"] not in source:
            raise client_error("NoSuchKey", 404, "CopyObject", "The specified key does not exist.")
        target[Key] = source[CopySource["Key"]]
        return {"CopyObjectResult": {"ETag": '"etag"'}, "ResponseMetadata": {"HTTPStatusCode": 200}}

    def delete_object(self, Bucket, Key, **kwargs):
        self.calls.append(("delete_object", {"Bucket": Bucket, "Key": Key, **kwargs}))
        self._objects(Bucket, "DeleteObject").pop(Key, None)
        return {"ResponseMetadata": {"HTTPStatusCode": 204}}

    def list_objects_v2(self, Bucket, Prefix="", MaxKeys=1000, ContinuationToken=None, **kwargs):
        self.calls.append(
            ("list_objects_v2", {"Bucket": Bucket, "Prefix": Prefix, "ContinuationToken": ContinuationToken})
        )
        objects = self._objects(Bucket, "ListObjectsV2")
        keys = sorted(key for key in objects if key.startswith(Prefix))
        start = int(ContinuationToken or 0)
        size = min(MaxKeys, self.page_size or MaxKeys)
        page = keys[start : start + size]

        response: dict = {"KeyCount": len(page), "IsTruncated": start + size < len(keys)}
        if page:
            response["Contents"] = [{"Key": key, "Size": len(objects[key])} for key in page]
        if start + size < len(keys):
            response["NextContinuationToken"] = str(start + size)
        return response

    def close(self):
        self.closed = True

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


@pytest.fixture
def volume_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Directory used as the filesystem volume root."""
    root = tmp_path / "volume"
    root.mkdir()
    return root


@pytest.fixture
def fs_volume(volume_root: pathlib.Path) -> FSVolumeDriver:
    return FSVolumeDriver({"root": str(volume_root)})


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def paged_s3_client() -> FakeS3Client:
    """Fake client returning at most two keys per list page."""
    return FakeS3Client(page_size=2)


@pytest.fixture
def s3_volume(s3_client: FakeS3Client) -> S3VolumeDriver:
    return S3VolumeDriver({"bucket": TEST_BUCKET, "root": "volume", "client_factory": lambda options: s3_client})


@pytest.fixture(params=["fs", "s3"])
def volume(request):
    """Each driver in turn, for behaviour both must share."""
    if request.param == "fs":
        return request.getfixturevalue("fs_volume")
    return request.getfixturevalue("s3_volume")
