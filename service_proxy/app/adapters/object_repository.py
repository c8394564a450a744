"""
S3 object repository holding the versioned build artifacts.

Objects live under ``{application}/{version}/{path}`` in one bucket.
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Dict, Mapping, Optional

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from shared.logging import get_logger


ACCESS_DENIED = "AccessDenied"
NOT_MODIFIED = "NotModified"

# Request header -> get_object parameter
CONDITIONAL_HEADERS = {
    "if-match": "IfMatch",
    "if-modified-since": "IfModifiedSince",
    "if-none-match": "IfNoneMatch",
    "if-unmodified-since": "IfUnmodifiedSince",
}
_DATE_PARAMS = {"IfModifiedSince", "IfUnmodifiedSince"}

# get_object response field -> response header
MIRRORED_HEADERS = {
    "LastModified": "Last-Modified",
    "ETag": "ETag",
    "CacheControl": "Cache-Control",
    "Expires": "Expires",
    "ContentDisposition": "Content-Disposition",
    "ContentEncoding": "Content-Encoding",
    "ContentLanguage": "Content-Language",
    "ContentType": "Content-Type",
}


class ObjectRepositoryError(RuntimeError):
    """Raised when the object store refuses or fails a request."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


@dataclass(frozen=True)
class StoredObject:
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


def object_key(application_id: str, version_id: str, path: str) -> str:
    return f"{application_id}/{version_id}/{path}"


def conditional_params(headers: Mapping[str, str]) -> Dict[str, Any]:
    """Translate conditional request headers into get_object parameters.

    Absent headers are left out; unparseable dates are dropped.
    """
    params: Dict[str, Any] = {}
    lowered = {name.lower(): value for name, value in headers.items()}
    for header, param in CONDITIONAL_HEADERS.items():
        value = lowered.get(header)
        if not value:
            continue
        if param in _DATE_PARAMS:
            try:
                params[param] = parsedate_to_datetime(value)
            except (TypeError, ValueError):
                continue
        else:
            params[param] = value
    return params


def mirrored_headers(response: Mapping[str, Any]) -> Dict[str, str]:
    """Pick the representation headers out of a get_object response."""
    headers: Dict[str, str] = {}
    for source, header in MIRRORED_HEADERS.items():
        value = response.get(source)
        if value is None or value == "":
            continue
        if isinstance(value, datetime):
            value = format_datetime(value, usegmt=True)
        headers[header] = str(value)
    return headers


def _error_code(exc: ClientError) -> str:
    error = exc.response.get("Error", {})
    code = str(error.get("Code", ""))
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    # botocore reports bodiless 304/403 responses by their status code
    if code in ("304", NOT_MODIFIED) or status == 304:
        return NOT_MODIFIED
    if code in ("403", ACCESS_DENIED):
        return ACCESS_DENIED
    return code or "Unknown"


class ObjectRepository:
    """Async S3 client fetching artifacts from a single bucket."""

    def __init__(
        self,
        bucket: Optional[str],
        *,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.logger = get_logger("proxy.object_repository")
        self._exit_stack: Optional[AsyncExitStack] = None
        self._client = None

    async def start(self) -> None:
        await self._ensure_client()

    async def close(self) -> None:
        """Close the underlying S3 client."""
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    async def _ensure_client(self):
        if self._client is not None:
            return self._client

        stack = AsyncExitStack()
        session = get_session()
        self._client = await stack.enter_async_context(
            session.create_client("s3", region_name=self.region, endpoint_url=self.endpoint_url)
        )
        self._exit_stack = stack
        return self._client

    async def get_object(self, key: str, request_headers: Mapping[str, str]) -> StoredObject:
        """Fetch ``key`` honouring the conditional headers of the incoming request."""
        if not self.bucket:
            raise ObjectRepositoryError("NoBucket", "Object storage bucket is not configured")

        client = await self._ensure_client()
        params = {"Bucket": self.bucket, "Key": key, **conditional_params(request_headers)}
        try:
            response = await client.get_object(**params)
            body = await response["Body"].read()
        except ClientError as exc:
            raise ObjectRepositoryError(_error_code(exc), str(exc)) from exc
        except BotoCoreError as exc:
            self.logger.error("Object storage request failed", key=key, error=str(exc))
            raise ObjectRepositoryError("Unavailable", str(exc)) from exc

        return StoredObject(body=body, headers=mirrored_headers(response))
