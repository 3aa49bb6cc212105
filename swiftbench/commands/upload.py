"""
Upload a local file or directory tree into a container.
"""

import logging
import os
import stat
from typing import Dict, Iterator, Optional

from swiftbench.commands.basic import check
from swiftbench.common import WorkerPool
from swiftbench.errors import OperationError, TransferError, handle_failure
from swiftbench.systems.base import ObjectStorageSystem

logger = logging.getLogger(__name__)


def walk_files(source: str) -> Iterator[str]:
    """Yield the regular files under source, skipping symlinks.

    source itself may be a symlink to a directory; links below it are not followed.
    """
    for root, dirs, files in os.walk(source):
        dirs[:] = sorted(d for d in dirs if not os.path.islink(os.path.join(root, d)))
        for name in sorted(files):
            path = os.path.join(root, name)
            if os.path.islink(path) or not os.path.isfile(path):
                continue
            yield path


def object_name(prefix: str, path: str) -> str:
    """Name a walked file: prefix plus its path as walked from the given source."""
    return prefix + os.path.normpath(path).replace(os.sep, "/")


class Uploader:
    """PUTs local files into one container."""

    def __init__(self, storage: ObjectStorageSystem, container: str,
                 headers: Optional[Dict[str, str]] = None, continue_on_error: bool = False):
        self.storage = storage
        self.container = container
        self.headers = headers or {}
        self.continue_on_error = continue_on_error
        self.uploaded = 0

    async def ensure_container(self) -> None:
        logger.debug(f"Ensuring container {self.container!r} exists.")
        response = await self.storage.put_container(self.container, self.headers)
        await check("PUT", self.container, response)
        response.close()

    async def upload_file(self, path: str, obj: str) -> None:
        """PUT one file; failures follow the continue-on-error policy."""
        logger.debug(f"Uploading {path!r} to {self.container!r} {obj!r}.")
        try:
            source = open(path, "rb")
        except OSError as e:
            handle_failure(
                TransferError(f"Cannot open {path} while attempting to upload to {self.container}/{obj}: {e}"),
                self.continue_on_error,
            )
            return
        with source:
            response = await self.storage.put_object(self.container, obj, self.headers, source)
            async with response:
                body = "" if response.ok else await response.text()
        logger.debug(f"X-Trans-Id: {response.trans_id!r}")
        if not response.ok:
            handle_failure(
                OperationError("PUT", f"{self.container}/{obj}", response.status, body),
                self.continue_on_error,
            )
            return
        self.uploaded += 1

    async def upload(self, source: str, prefix: str = "", concurrency: int = 1) -> int:
        """Upload source, a file or a directory tree.

        A single file is stored as prefix (or its base name when prefix is
        empty); files in a tree are stored as prefix plus their walked path, which
        starts with source as given.

        Returns:
            Number of files uploaded
        """
        try:
            info = os.stat(source)
        except OSError as e:
            raise TransferError(f"Could not stat {source}: {e}") from e

        await self.ensure_container()
        if stat.S_ISREG(info.st_mode):
            await self.upload_file(source, prefix or os.path.basename(source))
            return self.uploaded

        async def handle(path: str) -> None:
            await self.upload_file(path, object_name(prefix, path))

        pool = WorkerPool(concurrency, handle, name="upload").start()
        for path in walk_files(source):
            if not await pool.submit(path):
                break
        await pool.close()
        await pool.wait()
        return self.uploaded


async def upload(storage: ObjectStorageSystem, source: str, container: str = "", obj: str = "",
                 headers: Optional[Dict[str, str]] = None, concurrency: int = 1,
                 continue_on_error: bool = False) -> int:
    if not container:
        container = os.path.basename(os.path.abspath("."))
    uploader = Uploader(storage, container, headers, continue_on_error)
    return await uploader.upload(source, obj, concurrency)
