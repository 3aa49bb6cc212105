"""
Download an object, a container or a whole account to the local disk.

Listings are walked page by page in the producer; only object GETs go
through the WorkerPool, so a full queue can never hold up a listing.
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set

import aiohttp

from swiftbench.commands.basic import stream_body
from swiftbench.common import WorkerPool
from swiftbench.configuration import LISTING_PAGE_LIMIT
from swiftbench.errors import ConfigurationError, OperationError, TransferError, handle_failure
from swiftbench.systems.base import Listing, ObjectStorageSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadTask:
    container: str
    obj: str
    destpath: str


class DirectoryCache:
    """Creates parent directories once, however many workers ask."""

    def __init__(self):
        self._made: Set[str] = set()
        self._lock = threading.Lock()

    def ensure_parent(self, path: str) -> None:
        """Make the parent directory of path.

        Raises:
            OSError: If the directory cannot be created
        """
        directory = os.path.dirname(path)
        if not directory:
            return
        with self._lock:
            if directory in self._made:
                return
            os.makedirs(directory, exist_ok=True)
            self._made.add(directory)


async def iter_listing(
    list_page: Callable[..., Awaitable[Listing]],
    page_limit: int = LISTING_PAGE_LIMIT,
) -> AsyncIterator:
    """Yield every entry of a listing, following markers page by page.

    Raises:
        OperationError: If a page request fails
    """
    marker = ""
    while True:
        listing = await list_page(marker=marker, limit=page_limit)
        if not listing.ok:
            raise OperationError("GET", "", listing.status, await listing.response.text())
        for entry in listing.entries:
            yield entry
        if len(listing.entries) < page_limit:
            return
        marker = listing.entries[-1].name


def local_path(destpath: str, name: str) -> str:
    return os.path.join(destpath, *name.split("/"))


class Downloader:
    """GETs objects into files through a WorkerPool."""

    def __init__(self, storage: ObjectStorageSystem, headers: Optional[Dict[str, str]] = None,
                 concurrency: int = 1, continue_on_error: bool = False,
                 page_limit: int = LISTING_PAGE_LIMIT):
        self.storage = storage
        self.headers = headers or {}
        self.concurrency = concurrency
        self.continue_on_error = continue_on_error
        self.page_limit = page_limit
        self.directories = DirectoryCache()
        self.downloaded = 0
        self.pool: Optional[WorkerPool] = None

    async def fetch(self, task: DownloadTask) -> None:
        """Download one object; failures follow the continue-on-error policy."""
        logger.debug(f"Downloading {task.container}/{task.obj} to {task.destpath}.")
        try:
            self.directories.ensure_parent(task.destpath)
        except OSError as e:
            handle_failure(
                TransferError(f"Could not make directory path {os.path.dirname(task.destpath)}: {e}"),
                self.continue_on_error,
            )
            return

        try:
            response = await self.storage.get_object(task.container, task.obj, self.headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            handle_failure(TransferError(f"GET {task.container}/{task.obj} - {e}"), self.continue_on_error)
            return
        logger.debug(f"X-Trans-Id: {response.trans_id!r}")
        if not response.ok:
            async with response:
                body = await response.text()
            handle_failure(
                OperationError("GET", f"{task.container}/{task.obj}", response.status, body),
                self.continue_on_error,
            )
            return

        try:
            with open(task.destpath, "wb") as sink:
                await stream_body(response, sink)
        except (OSError, aiohttp.ClientError) as e:
            response.close()
            handle_failure(
                TransferError(f"Could not complete content transfer from "
                              f"{task.container}/{task.obj} to {task.destpath}: {e}"),
                self.continue_on_error,
            )
            return
        self.downloaded += 1

    async def _queue_container(self, container: str, destpath: str) -> bool:
        """Submit every object of container; False once the pool has stopped."""
        async def list_page(marker, limit):
            return await self.storage.get_container(container, marker=marker, limit=limit,
                                                    headers=self.headers)
        try:
            async for entry in iter_listing(list_page, self.page_limit):
                if not entry.name:
                    continue
                task = DownloadTask(container, entry.name, local_path(destpath, entry.name))
                if not await self.pool.submit(task):
                    return False
        except OperationError as e:
            handle_failure(OperationError("GET", container, e.status, e.body), self.continue_on_error)
        return True

    async def download(self, container: str, obj: str, destpath: str, account: bool = False) -> int:
        """Download an object, a container, or (with account) every container.

        Returns:
            Number of objects downloaded

        Raises:
            ConfigurationError: For a destination that cannot hold the target
        """
        if not obj:
            if os.path.exists(destpath) and not os.path.isdir(destpath):
                what = "a container" if container else "an account"
                raise ConfigurationError(f"Cannot download {what} to a single file: {destpath}")
            if not container and not account:
                raise ConfigurationError("You must specify -a if you wish to download the entire account.")

        self.pool = WorkerPool(self.concurrency, self.fetch, name="download").start()
        try:
            if obj:
                if os.path.isdir(destpath):
                    destpath = os.path.join(destpath, obj)
                await self.pool.submit(DownloadTask(container, obj, destpath))
            elif container:
                await self._queue_container(container, destpath)
            else:
                async def list_page(marker, limit):
                    return await self.storage.get_account(marker=marker, limit=limit, headers=self.headers)
                async for entry in iter_listing(list_page, self.page_limit):
                    if not await self._queue_container(entry.name, os.path.join(destpath, entry.name)):
                        break
        except Exception:
            self.pool.stop()
            await asyncio.gather(*self.pool.worker_tasks, return_exceptions=True)
            raise
        await self.pool.close()
        await self.pool.wait()
        return self.downloaded


async def download(storage: ObjectStorageSystem, container: str, obj: str, destpath: str,
                   account: bool = False, headers: Optional[Dict[str, str]] = None,
                   concurrency: int = 1, continue_on_error: bool = False) -> int:
    downloader = Downloader(storage, headers, concurrency, continue_on_error)
    return await downloader.download(container, obj, destpath, account)
