"""
Swift / Hummingbird object storage system over aiohttp.
"""

import itertools
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
from yarl import URL

from swiftbench.configuration import USER_AGENT
from swiftbench.errors import AuthenticationError
from swiftbench.systems.base import Body, ObjectStorageSystem, StorageResponse

logger = logging.getLogger(__name__)


class SwiftResponse(StorageResponse):
    """StorageResponse backed by a live aiohttp response."""

    def __init__(self, response: aiohttp.ClientResponse):
        self._response = response
        self.status = response.status
        self.headers = response.headers

    async def read(self) -> bytes:
        return await self._response.read()

    def iter_chunked(self, size: int):
        return self._response.content.iter_chunked(size)

    def close(self) -> None:
        self._response.release()


class SwiftSystem(ObjectStorageSystem):
    """Authenticated client for a Swift-style storage cluster.

    Use as an async context manager: entering opens the HTTP session and
    authenticates, leaving closes the session.
    """

    def __init__(
        self,
        auth_url: str,
        user: str,
        key: str = "",
        password: str = "",
        tenant: str = "",
        region: str = "",
        internal: bool = False,
        override_urls: Optional[List[str]] = None,
        user_agent: str = USER_AGENT,
        connection_limit: int = 0,
    ):
        self.auth_url = auth_url
        self.user = user
        self.key = key
        self.password = password
        self.tenant = tenant
        self.region = region
        self.internal = internal
        self.override_urls = [url for url in (override_urls or []) if url]
        self.user_agent = user_agent
        self.connection_limit = connection_limit

        self.session: Optional[aiohttp.ClientSession] = None
        self.storage_urls: List[str] = []
        self.token: str = ""
        self._url_cycle = None

    async def __aenter__(self):
        # No request timeout; calls in flight at shutdown run to completion.
        self.session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self.connection_limit),
            timeout=aiohttp.ClientTimeout(total=None),
        )
        try:
            await self.authenticate()
        except BaseException:
            await self.session.close()
            self.session = None
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    def get_url(self) -> str:
        return self.storage_urls[0] if self.storage_urls else ""

    def get_urls(self) -> List[str]:
        return list(self.storage_urls)

    def get_token(self) -> str:
        return self.token

    def set_user_agent(self, user_agent: str) -> None:
        self.user_agent = user_agent

    async def authenticate(self) -> None:
        """Obtain a token and storage URL(s) from the auth system.

        Raises:
            AuthenticationError: If auth fails or yields no storage URL
        """
        if "/v2" in self.auth_url:
            await self._authenticate_v2()
        else:
            await self._authenticate_v1()
        if self.override_urls:
            self.storage_urls = list(self.override_urls)
        if not self.storage_urls:
            raise AuthenticationError(0, message="Auth gave no storage URL")
        self._url_cycle = itertools.cycle(self.storage_urls)
        logger.debug(f"Authenticated; storage URLs: {' '.join(self.storage_urls)}")

    async def _authenticate_v1(self) -> None:
        user = f"{self.tenant}:{self.user}" if self.tenant else self.user
        headers = {
            "X-Auth-User": user,
            "X-Auth-Key": self.key or self.password,
            "User-Agent": self.user_agent,
        }
        async with self.session.get(self.auth_url, headers=headers) as response:
            body = await response.text()
            if response.status // 100 != 2:
                raise AuthenticationError(response.status, body)
            self.token = response.headers.get("X-Auth-Token", "")
            storage_url = response.headers.get("X-Storage-Url", "")
        self.storage_urls = [storage_url] if storage_url else []

    async def _authenticate_v2(self) -> None:
        if self.password:
            credentials: Dict[str, Any] = {
                "passwordCredentials": {"username": self.user, "password": self.password}
            }
        else:
            credentials = {
                "RAX-KSKEY:apiKeyCredentials": {"username": self.user, "apiKey": self.key}
            }
        if self.tenant:
            credentials["tenantName"] = self.tenant
        url = self.auth_url.rstrip("/")
        if not url.endswith("/tokens"):
            url += "/tokens"
        async with self.session.post(
            url, json={"auth": credentials}, headers={"User-Agent": self.user_agent}
        ) as response:
            if response.status // 100 != 2:
                raise AuthenticationError(response.status, await response.text())
            document = await response.json(content_type=None)

        access = document.get("access", {})
        self.token = access.get("token", {}).get("id", "")
        endpoint_key = "internalURL" if self.internal else "publicURL"
        urls = []
        for service in access.get("serviceCatalog", []):
            if service.get("type") != "object-store":
                continue
            for endpoint in service.get("endpoints", []):
                if self.region and endpoint.get("region", "").lower() != self.region.lower():
                    continue
                if endpoint.get(endpoint_key):
                    urls.append(endpoint[endpoint_key])
        self.storage_urls = urls[:1] if not self.region else urls

    def _url(self, container: str = "", obj: str = "") -> str:
        url = next(self._url_cycle)
        if container:
            url += "/" + quote(container, safe="")
            if obj:
                url += "/" + quote(obj, safe="/")
        return url

    async def request(
        self,
        method: str,
        container: str = "",
        obj: str = "",
        headers: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None,
        body: Body = None,
    ) -> SwiftResponse:
        """Issue one request against the storage URL and return the open response."""
        if self.session is None:
            raise RuntimeError("Storage session not initialized. Use async context manager.")
        request_headers = {"X-Auth-Token": self.token, "User-Agent": self.user_agent}
        request_headers.update(headers or {})
        url = URL(self._url(container, obj), encoded=True)
        if query:
            url = url.with_query(query)
        response = await self.session.request(method, url, headers=request_headers, data=body)
        return SwiftResponse(response)

    @staticmethod
    def _listing_query(marker, end_marker, limit, prefix, delimiter, reverse) -> Dict[str, str]:
        query = {}
        if marker:
            query["marker"] = marker
        if end_marker:
            query["end_marker"] = end_marker
        if limit > 0:
            query["limit"] = str(limit)
        if prefix:
            query["prefix"] = prefix
        if delimiter:
            query["delimiter"] = delimiter
        if reverse:
            query["reverse"] = "true"
        return query

    # Account level

    async def put_account(self, headers=None):
        return await self.request("PUT", headers=headers)

    async def post_account(self, headers=None):
        return await self.request("POST", headers=headers)

    async def get_account_raw(self, marker="", end_marker="", limit=0, prefix="",
                              delimiter="", reverse=False, headers=None):
        query = self._listing_query(marker, end_marker, limit, prefix, delimiter, reverse)
        return await self.request("GET", headers=headers, query=query)

    async def head_account(self, headers=None):
        return await self.request("HEAD", headers=headers)

    async def delete_account(self, headers=None):
        return await self.request("DELETE", headers=headers)

    # Container level

    async def put_container(self, container, headers=None):
        return await self.request("PUT", container, headers=headers)

    async def post_container(self, container, headers=None):
        return await self.request("POST", container, headers=headers)

    async def get_container_raw(self, container, marker="", end_marker="", limit=0,
                                prefix="", delimiter="", reverse=False, headers=None):
        query = self._listing_query(marker, end_marker, limit, prefix, delimiter, reverse)
        return await self.request("GET", container, headers=headers, query=query)

    async def head_container(self, container, headers=None):
        return await self.request("HEAD", container, headers=headers)

    async def delete_container(self, container, headers=None):
        return await self.request("DELETE", container, headers=headers)

    # Object level

    async def put_object(self, container, obj, headers=None, body=b""):
        return await self.request("PUT", container, obj, headers=headers, body=body)

    async def post_object(self, container, obj, headers=None):
        return await self.request("POST", container, obj, headers=headers)

    async def get_object(self, container, obj, headers=None):
        return await self.request("GET", container, obj, headers=headers)

    async def head_object(self, container, obj, headers=None):
        return await self.request("HEAD", container, obj, headers=headers)

    async def delete_object(self, container, obj, headers=None):
        return await self.request("DELETE", container, obj, headers=headers)
