"""
Async base classes for Swift-style object storage systems.

A storage system performs the account/container/object verbs and hands
back a StorageResponse. Callers own the response: they must read or
drain the body and close it (``async with response:`` does the closing)
so the connection can be reused.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from multidict import CIMultiDict, CIMultiDictProxy

from swiftbench.configuration import TRANS_ID_HEADER
from swiftbench.errors import status_text

logger = logging.getLogger(__name__)

Body = Union[bytes, AsyncIterator[bytes], Any]


class StorageResponse:
    """Status, header multimap and a body that must be consumed and closed."""

    status: int = 0
    headers: CIMultiDictProxy

    @property
    def reason(self) -> str:
        return status_text(self.status)

    @property
    def ok(self) -> bool:
        return self.status // 100 == 2

    @property
    def trans_id(self) -> str:
        return self.headers.get(TRANS_ID_HEADER, "")

    async def read(self) -> bytes:
        raise NotImplementedError

    def iter_chunked(self, size: int) -> AsyncIterator[bytes]:
        raise NotImplementedError

    async def drain(self) -> int:
        """Read and discard the rest of the body, returning the byte count."""
        total = 0
        async for chunk in self.iter_chunked(64 * 1024):
            total += len(chunk)
        return total

    async def text(self) -> str:
        return (await self.read()).decode("utf-8", errors="replace")

    def close(self) -> None:
        raise NotImplementedError

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


class StubResponse(StorageResponse):
    """Standalone response built from known values; the body lives in memory."""

    def __init__(self, status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None):
        self.status = status
        self._body = body if isinstance(body, bytes) else str(body).encode()
        merged = CIMultiDict({"Content-Length": str(len(self._body)), "Content-Type": "text/plain"})
        if headers:
            for key, value in headers.items():
                merged[key] = value
        self.headers = CIMultiDictProxy(merged)
        self._offset = 0
        self.closed = False

    async def read(self) -> bytes:
        data = self._body[self._offset:]
        self._offset = len(self._body)
        return data

    async def iter_chunked(self, size: int) -> AsyncIterator[bytes]:
        while self._offset < len(self._body):
            chunk = self._body[self._offset:self._offset + size]
            self._offset += len(chunk)
            yield chunk

    def close(self) -> None:
        self.closed = True


@dataclass
class ContainerRecord:
    """An entry in an account listing."""

    name: str
    count: int = 0
    bytes: int = 0


@dataclass
class ObjectRecord:
    """An entry in a container listing; subdir is set for delimiter rollups."""

    name: str = ""
    subdir: str = ""
    bytes: int = 0
    content_type: str = ""
    last_modified: str = ""
    hash: str = ""

    @property
    def display_name(self) -> str:
        return self.subdir or self.name


@dataclass
class Listing:
    """A decoded listing; the response body has already been consumed."""

    entries: List[Union[ContainerRecord, ObjectRecord]] = field(default_factory=list)
    response: Optional[StorageResponse] = None

    @property
    def status(self) -> int:
        return self.response.status if self.response is not None else 0

    @property
    def ok(self) -> bool:
        return self.response is not None and self.response.ok


def decode_container_records(data: bytes) -> List[ContainerRecord]:
    return [
        ContainerRecord(
            name=item.get("name", ""),
            count=int(item.get("count", 0)),
            bytes=int(item.get("bytes", 0)),
        )
        for item in json.loads(data or b"[]")
    ]


def decode_object_records(data: bytes) -> List[ObjectRecord]:
    return [
        ObjectRecord(
            name=item.get("name", ""),
            subdir=item.get("subdir", ""),
            bytes=int(item.get("bytes", 0)),
            content_type=item.get("content_type", ""),
            last_modified=item.get("last_modified", ""),
            hash=item.get("hash", ""),
        )
        for item in json.loads(data or b"[]")
    ]


class ObjectStorageSystem:
    """Async interface to an account/container/object storage service.

    Every method returns a StorageResponse (or a Listing wrapping one) that
    the caller must consume and close. Failures are reported through the
    status code, never by raising, except for transport errors.
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    def get_url(self) -> str:
        raise NotImplementedError

    def get_urls(self) -> List[str]:
        return [self.get_url()]

    def get_token(self) -> str:
        return ""

    # Account level

    async def put_account(self, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def post_account(self, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def get_account_raw(
        self, marker: str = "", end_marker: str = "", limit: int = 0, prefix: str = "",
        delimiter: str = "", reverse: bool = False, headers: Optional[Dict[str, str]] = None,
    ) -> StorageResponse:
        raise NotImplementedError

    async def get_account(
        self, marker: str = "", end_marker: str = "", limit: int = 0, prefix: str = "",
        delimiter: str = "", reverse: bool = False, headers: Optional[Dict[str, str]] = None,
    ) -> Listing:
        response = await self.get_account_raw(
            marker, end_marker, limit, prefix, delimiter, reverse, _json_headers(headers)
        )
        return await _decode_listing(response, decode_container_records)

    async def head_account(self, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def delete_account(self, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    # Container level

    async def put_container(self, container: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def post_container(self, container: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def get_container_raw(
        self, container: str, marker: str = "", end_marker: str = "", limit: int = 0,
        prefix: str = "", delimiter: str = "", reverse: bool = False,
        headers: Optional[Dict[str, str]] = None,
    ) -> StorageResponse:
        raise NotImplementedError

    async def get_container(
        self, container: str, marker: str = "", end_marker: str = "", limit: int = 0,
        prefix: str = "", delimiter: str = "", reverse: bool = False,
        headers: Optional[Dict[str, str]] = None,
    ) -> Listing:
        response = await self.get_container_raw(
            container, marker, end_marker, limit, prefix, delimiter, reverse, _json_headers(headers)
        )
        return await _decode_listing(response, decode_object_records)

    async def head_container(self, container: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def delete_container(self, container: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    # Object level

    async def put_object(
        self, container: str, obj: str, headers: Optional[Dict[str, str]] = None, body: Body = b"",
    ) -> StorageResponse:
        raise NotImplementedError

    async def post_object(self, container: str, obj: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def get_object(self, container: str, obj: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def head_object(self, container: str, obj: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError

    async def delete_object(self, container: str, obj: str, headers: Optional[Dict[str, str]] = None) -> StorageResponse:
        raise NotImplementedError


def _json_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    merged = dict(headers or {})
    merged.setdefault("Accept", "application/json")
    return merged


async def _decode_listing(response: StorageResponse, decoder) -> Listing:
    """Consume a listing response; entries stay empty for non-2xx replies."""
    async with response:
        data = await response.read()
    stub = StubResponse(response.status, data, dict(response.headers))
    if not response.ok:
        return Listing([], stub)
    try:
        entries = decoder(data)
    except (ValueError, TypeError) as e:
        logger.warning(f"Could not decode listing: {e}")
        entries = []
    return Listing(entries, stub)
