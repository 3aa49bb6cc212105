"""
In-memory storage system used by the tests.
"""

import asyncio
import itertools
import json
from typing import Callable, Dict, List, Optional, Set, Tuple

import aiohttp

from swiftbench.systems.base import ObjectStorageSystem, StubResponse


class FakeStorage(ObjectStorageSystem):
    """Account/container/object store kept in dicts.

    Attributes:
        calls: (method, container, object) for every request, in call order
        put_sizes: Body length of every object PUT
        headers_seen: Request headers for every request, in call order
        fail: Maps (method, container, object) to a status to answer with
        broken: (method, container, object) keys that fail with a connection error
        on_call: Optional hook called with (method, container, object) before answering
    """

    def __init__(self, url: str = "http://fake/v1/AUTH_test", token: str = "AUTH_tk_fake",
                 delay: float = 0.0):
        self.url = url
        self.token = token
        self.delay = delay
        self.containers: Dict[str, Dict[str, bytes]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.put_sizes: List[int] = []
        self.headers_seen: List[Dict[str, str]] = []
        self.fail: Dict[Tuple[str, str, str], int] = {}
        self.broken: Set[Tuple[str, str, str]] = set()
        self.on_call: Optional[Callable[[str, str, str], None]] = None
        self.listing_requests: List[Dict] = []
        self._trans = itertools.count(1)

    def get_url(self) -> str:
        return self.url

    def get_token(self) -> str:
        return self.token

    def add_objects(self, container: str, names, body: bytes = b"data") -> None:
        objects = self.containers.setdefault(container, {})
        for name in names:
            objects[name] = body

    def calls_for(self, method: str) -> List[Tuple[str, str, str]]:
        return [call for call in self.calls if call[0] == method]

    async def _begin(self, method: str, container: str = "", obj: str = "", headers=None) -> Optional[int]:
        self.calls.append((method, container, obj))
        self.headers_seen.append(dict(headers or {}))
        if self.on_call is not None:
            self.on_call(method, container, obj)
        await asyncio.sleep(self.delay)
        if (method, container, obj) in self.broken:
            raise aiohttp.ClientConnectionError(f"connection reset during {method} {container}/{obj}")
        return self.fail.get((method, container, obj))

    def _respond(self, status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None) -> StubResponse:
        merged = {"X-Trans-Id": f"tx{next(self._trans)}"}
        merged.update(headers or {})
        return StubResponse(status, body, merged)

    @staticmethod
    async def _read_body(body) -> bytes:
        if body is None:
            return b""
        if isinstance(body, bytes):
            return body
        if hasattr(body, "read"):
            return body.read()
        data = b""
        async for chunk in body:
            data += chunk
        return data

    @staticmethod
    def _page(names: List[str], marker: str, end_marker: str, limit: int, prefix: str, reverse: bool):
        names = sorted(names, reverse=reverse)
        if prefix:
            names = [name for name in names if name.startswith(prefix)]
        if marker:
            names = [name for name in names if (name < marker if reverse else name > marker)]
        if end_marker:
            names = [name for name in names if (name > end_marker if reverse else name < end_marker)]
        if limit > 0:
            names = names[:limit]
        return names

    # Account level

    async def put_account(self, headers=None):
        return self._respond(await self._begin("PUT", headers=headers) or 201)

    async def post_account(self, headers=None):
        return self._respond(await self._begin("POST", headers=headers) or 204)

    async def get_account_raw(self, marker="", end_marker="", limit=0, prefix="",
                              delimiter="", reverse=False, headers=None):
        status = await self._begin("GET", headers=headers)
        if status:
            return self._respond(status, b"account listing failed")
        self.listing_requests.append({"container": "", "marker": marker, "limit": limit})
        names = self._page(list(self.containers), marker, end_marker, limit, prefix, reverse)
        entries = [
            {"name": name, "count": len(self.containers[name]),
             "bytes": sum(len(body) for body in self.containers[name].values())}
            for name in names
        ]
        return self._respond(200, json.dumps(entries).encode(), {"Content-Type": "application/json"})

    async def head_account(self, headers=None):
        status = await self._begin("HEAD", headers=headers)
        return self._respond(status or 204, headers={"X-Account-Container-Count": str(len(self.containers))})

    async def delete_account(self, headers=None):
        return self._respond(await self._begin("DELETE", headers=headers) or 204)

    # Container level

    async def put_container(self, container, headers=None):
        status = await self._begin("PUT", container, headers=headers)
        if status:
            return self._respond(status, b"container put failed")
        self.containers.setdefault(container, {})
        return self._respond(201)

    async def post_container(self, container, headers=None):
        status = await self._begin("POST", container, headers=headers)
        return self._respond(status or (204 if container in self.containers else 404))

    async def get_container_raw(self, container, marker="", end_marker="", limit=0,
                                prefix="", delimiter="", reverse=False, headers=None):
        status = await self._begin("GET", container, headers=headers)
        if status:
            return self._respond(status, b"container listing failed")
        if container not in self.containers:
            return self._respond(404, b"Not Found")
        self.listing_requests.append({"container": container, "marker": marker, "limit": limit})
        objects = self.containers[container]
        names = self._page(list(objects), marker, end_marker, limit, prefix, reverse)
        entries = [
            {"name": name, "bytes": len(objects[name]), "content_type": "application/octet-stream",
             "last_modified": "2024-01-01T00:00:00.000000", "hash": "d41d8cd98f00b204e9800998ecf8427e"}
            for name in names
        ]
        return self._respond(200, json.dumps(entries).encode(), {"Content-Type": "application/json"})

    async def head_container(self, container, headers=None):
        status = await self._begin("HEAD", container, headers=headers)
        if status or container not in self.containers:
            return self._respond(status or 404)
        return self._respond(204, headers={"X-Container-Object-Count": str(len(self.containers[container]))})

    async def delete_container(self, container, headers=None):
        status = await self._begin("DELETE", container, headers=headers)
        if status:
            return self._respond(status, b"container delete failed")
        if container not in self.containers:
            return self._respond(404, b"Not Found")
        if self.containers[container]:
            return self._respond(409, b"Conflict")
        del self.containers[container]
        return self._respond(204)

    # Object level

    async def put_object(self, container, obj, headers=None, body=b""):
        status = await self._begin("PUT", container, obj, headers=headers)
        data = await self._read_body(body)
        self.put_sizes.append(len(data))
        if status:
            return self._respond(status, b"object put failed")
        if container not in self.containers:
            return self._respond(404, b"Not Found")
        self.containers[container][obj] = data
        return self._respond(201)

    async def post_object(self, container, obj, headers=None):
        status = await self._begin("POST", container, obj, headers=headers)
        if status:
            return self._respond(status, b"object post failed")
        if obj not in self.containers.get(container, {}):
            return self._respond(404, b"Not Found")
        return self._respond(202)

    async def get_object(self, container, obj, headers=None):
        status = await self._begin("GET", container, obj, headers=headers)
        if status:
            return self._respond(status, b"object get failed")
        if obj not in self.containers.get(container, {}):
            return self._respond(404, b"Not Found")
        return self._respond(200, self.containers[container][obj])

    async def head_object(self, container, obj, headers=None):
        status = await self._begin("HEAD", container, obj, headers=headers)
        if status:
            return self._respond(status)
        if obj not in self.containers.get(container, {}):
            return self._respond(404)
        return self._respond(200)

    async def delete_object(self, container, obj, headers=None):
        status = await self._begin("DELETE", container, obj, headers=headers)
        if status:
            return self._respond(status, b"object delete failed")
        if obj not in self.containers.get(container, {}):
            return self._respond(404, b"Not Found")
        del self.containers[container][obj]
        return self._respond(204)
