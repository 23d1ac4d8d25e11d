# SPDX-License-Identifier: MIT
"""S3 (and S3-compatible) object-store volume driver.

Keys live under a ``root`` prefix inside one bucket.  The boto3 client is
built once by an injectable factory; its blocking calls are run through
:func:`anyio.to_thread.run_sync` so every operation is an await point.
"""

from __future__ import annotations

import io
import logging
import tempfile
from collections.abc import AsyncIterator
from functools import partial
from typing import Any

import anyio
import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError

from ..config import ConfigInput, S3ClientOptions, S3VolumeConfig
from ..errors import VolumeError
from ..security import TRAVERSAL_HINT, join_key, strip_key
from .protocol import Content, CopyResult, Entry, ExistsResult, MoveResult, ReadResult, RemoveResult, WriteResult

logger = logging.getLogger("filestore")

PAGE_SIZE = 1000
SPOOL_MAX_BYTES = 8 * 1024 * 1024

_NATIVE_ERRORS = (ClientError, BotoCoreError, S3UploadFailedError)
# upload_fileobj validates ExtraArgs with ValueError; spooling a stream may fail with OSError
_WRITE_ERRORS = (*_NATIVE_ERRORS, ValueError, TypeError, OSError)


def default_client_factory(options: S3ClientOptions) -> Any:
    """Build a boto3 S3 client from *options*.

    A custom ``endpoint_url`` (minio, localstack, R2) switches to path-style
    addressing with SigV4 signing.
    """
    client_kwargs: dict[str, Any] = {
        "region_name": options.region,
        "aws_access_key_id": options.access_key_id,
        "aws_secret_access_key": options.secret_access_key,
    }
    if options.endpoint_url:
        client_kwargs["endpoint_url"] = options.endpoint_url
        client_kwargs["config"] = Config(signature_version="s3v4", s3={"addressing_style": "path"})
    return boto3.client("s3", **client_kwargs)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _http_status(error: ClientError) -> int | None:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _build_error(error: BaseException, path: str, bucket: str | None) -> VolumeError:
    """Translate a boto3/botocore error into a :class:`VolumeError`."""
    if isinstance(error, S3UploadFailedError) and isinstance(error.__cause__ or error.__context__, ClientError):
        error = error.__cause__ or error.__context__  # type: ignore[assignment]

    match error:
        case ClientError():
            match _error_code(error):
                case "NoSuchBucket":
                    return VolumeError.unknown_bucket(error, bucket, path)
                case "NoSuchKey" | "NotFound" | "404":
                    return VolumeError.not_found(error, path, bucket)
                case "AllAccessDisabled" | "AccessDenied" | "403":
                    return VolumeError.permission_required(error, path, bucket)
                case _:
                    return VolumeError.unknown(error, path, bucket)
        case NoCredentialsError() | PartialCredentialsError():
            return VolumeError.permission_required(error, path, bucket)
        case _:
            return VolumeError.unknown(error, path, bucket)


async def _as_fileobj(content: Content) -> io.IOBase:
    """Wrap *content* in a seekable file object for ``upload_fileobj``.

    Streams are spooled to memory, spilling to a temp file past
    ``SPOOL_MAX_BYTES``.
    """
    if isinstance(content, str):
        return io.BytesIO(content.encode("utf-8"))
    if isinstance(content, bytes | bytearray):
        return io.BytesIO(bytes(content))
    if not hasattr(content, "__aiter__"):
        raise TypeError(f"Unsupported content type: {type(content).__name__}")

    spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)  # noqa: SIM115
    try:
        async for chunk in content:
            spool.write(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
    except BaseException:
        spool.close()
        raise
    spool.seek(0)
    return spool  # type: ignore[return-value]


class S3VolumeDriver:
    """Volume backed by a key prefix in an S3 bucket.

    Every operation accepts ``params``: extra request parameters merged over
    the ones the driver builds (``Bucket``, ``Key`` ...), for things like
    ``ContentType`` or ``ServerSideEncryption``.

    Args:
        config: :class:`S3VolumeConfig` or a mapping of its fields.
        defaults: Injected defaults, overridden by *config*.
        client: Pre-built client; skips ``client_factory``.
    """

    protocol = "s3"

    def __init__(self, config: ConfigInput = None, *, defaults: ConfigInput = None, client: Any = None) -> None:
        self.config = S3VolumeConfig.resolve(config, defaults)
        if not self.config.bucket:
            raise VolumeError.missing_argument("S3VolumeDriver", "bucket")

        self._bucket: str = self.config.bucket
        self._root = self.config.root
        if client is None:
            factory = self.config.client_factory or default_client_factory
            client = factory(self.config.client_options)
        self._client = client
        logger.info("S3VolumeDriver initialized: bucket=%s root=%r", self._bucket, self._root)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def root(self) -> str:
        return self._root

    @property
    def client(self) -> Any:
        return self._client

    def __repr__(self) -> str:
        return f"S3VolumeDriver(bucket={self._bucket!r}, root={self._root!r})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the underlying client's connection pool."""
        close = getattr(self._client, "close", None)
        if close is not None:
            await anyio.to_thread.run_sync(close)

    async def __aenter__(self) -> S3VolumeDriver:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def normalize(self, path: str | None) -> str:
        """Object key for the volume-relative *path*."""
        path = path or ""
        try:
            return join_key(self._root, path)
        except ValueError as e:
            raise VolumeError.not_permitted(e, path, hint=TRAVERSAL_HINT) from e

    def denormalize(self, key: str) -> str:
        """Volume-relative path for an object *key*."""
        return strip_key(self._root, key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call(self, method: str, **params: Any) -> Any:
        return await anyio.to_thread.run_sync(partial(getattr(self._client, method), **params))

    def _request(self, key: str, params: dict[str, Any] | None) -> dict[str, Any]:
        return {"Bucket": self._bucket, "Key": key, **(params or {})}

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def write(self, path: str, content: Content, *, params: dict[str, Any] | None = None) -> WriteResult:
        request = self._request(self.normalize(path), params)
        bucket = request.pop("Bucket")
        key = request.pop("Key")
        body = None
        try:
            body = await _as_fileobj(content)
            await anyio.to_thread.run_sync(
                partial(self._client.upload_fileobj, body, bucket, key, ExtraArgs=request or None)
            )
        except _WRITE_ERRORS as e:
            raise _build_error(e, path, self._bucket) from e
        finally:
            if body is not None:
                body.close()
        logger.debug("Uploaded s3://%s/%s", bucket, key)
        return WriteResult(raw={"Bucket": bucket, "Key": key})

    async def exists(self, path: str, *, params: dict[str, Any] | None = None) -> ExistsResult:
        request = self._request(self.normalize(path), params)
        try:
            response = await self._call("head_object", **request)
        except ClientError as e:
            if _http_status(e) == 404 or _error_code(e) in ("404", "NoSuchKey", "NotFound"):
                return ExistsResult(exists=False, raw=e.response)
            raise _build_error(e, path, self._bucket) from e
        except _NATIVE_ERRORS as e:
            raise _build_error(e, path, self._bucket) from e
        return ExistsResult(exists=True, raw=response)

    async def read(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        as_bytes: bool = False,
        encoding: str = "utf-8",
    ) -> ReadResult:
        request = self._request(self.normalize(path), params)

        def _fetch() -> tuple[dict[str, Any], bytes]:
            response = self._client.get_object(**request)
            return response, response["Body"].read()

        try:
            response, data = await anyio.to_thread.run_sync(_fetch)
        except _NATIVE_ERRORS as e:
            raise _build_error(e, path, self._bucket) from e

        raw = {k: v for k, v in response.items() if k != "Body"}
        if as_bytes:
            return ReadResult(content=data, raw=raw)
        try:
            return ReadResult(content=data.decode(encoding), raw=raw)
        except (UnicodeDecodeError, LookupError) as e:
            raise VolumeError.unknown(e, path, self._bucket) from e

    async def copy(
        self,
        source: str,
        target: str,
        *,
        params: dict[str, Any] | None = None,
        overwrite: bool = True,
    ) -> CopyResult:
        """Server-side copy; no bytes pass through this process.

        With ``overwrite=False`` an existing target is refused.  The check is
        a separate ``head_object`` request, so it does not guard against a
        concurrent writer.
        """
        if not overwrite and (await self.exists(target)).exists:
            raise VolumeError.not_permitted(None, f"{source} -> {target}", hint="Use overwrite option.")
        request = {
            "Bucket": self._bucket,
            "Key": self.normalize(target),
            "CopySource": {"Bucket": self._bucket, "Key": self.normalize(source)},
            **(params or {}),
        }
        try:
            response = await self._call("copy_object", **request)
        except _NATIVE_ERRORS as e:
            raise _build_error(e, f"{source} -> {target}", self._bucket) from e
        logger.debug("Copied s3://%s/%s to %s", self._bucket, request["CopySource"]["Key"], request["Key"])
        return CopyResult(raw=response)

    async def move(self, source: str, target: str, *, params: dict[str, Any] | None = None) -> MoveResult:
        """Copy *source* to *target*, then delete *source*.

        Not atomic.  If the delete fails the target has already been written
        and both objects exist; the raised error carries
        ``data["copied"] = True`` with ``source`` and ``target`` so the caller
        can reconcile.  *params* apply to the copy request.

        Moving a key onto itself only checks that it exists.
        """
        if self.normalize(source) == self.normalize(target):
            if not (await self.exists(source)).exists:
                raise VolumeError.not_found(None, source, self._bucket)
            return MoveResult(raw={"copy": None, "remove": None})
        copied = await self.copy(source, target, params=params)
        try:
            removed = await self.remove(source)
        except VolumeError as e:
            logger.warning("Move %s -> %s: copy succeeded but delete failed, both objects exist", source, target)
            e.data.update({"source": source, "target": target, "copied": True})
            raise
        return MoveResult(raw={"copy": copied.raw, "remove": removed.raw})

    async def remove(self, path: str, *, params: dict[str, Any] | None = None) -> RemoveResult:
        """Delete one object.

        S3 acknowledges deletes of missing keys, so ``deleted`` is ``None``.
        """
        if not path:
            raise VolumeError.missing_argument("remove", "path")
        request = self._request(self.normalize(path), params)
        try:
            response = await self._call("delete_object", **request)
        except _NATIVE_ERRORS as e:
            raise _build_error(e, path, self._bucket) from e
        logger.debug("Deleted s3://%s/%s", self._bucket, request["Key"])
        return RemoveResult(raw=response, deleted=None)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list(self, prefix: str = "", *, params: dict[str, Any] | None = None) -> AsyncIterator[Entry]:
        """Paginated listing of objects whose relative path starts with *prefix*.

        A page is requested only once the previous one has been consumed.
        Folder marker keys (ending in ``/``) are skipped.
        """
        prefix = prefix or ""
        return self._pages(prefix, self.normalize(prefix), dict(params or {}))

    async def _pages(self, prefix: str, key_prefix: str, params: dict[str, Any]) -> AsyncIterator[Entry]:
        token: str | None = None
        while True:
            request: dict[str, Any] = {"Bucket": self._bucket, "Prefix": key_prefix, "MaxKeys": PAGE_SIZE, **params}
            if token:
                request["ContinuationToken"] = token
            try:
                response = await self._call("list_objects_v2", **request)
            except _NATIVE_ERRORS as e:
                raise _build_error(e, prefix, self._bucket) from e

            for obj in response.get("Contents", []):
                if obj["Key"].endswith("/"):
                    continue
                yield Entry(path=self.denormalize(obj["Key"]), raw=obj)

            token = response.get("NextContinuationToken")
            if not token:
                break
