"""
Single-request commands: auth, get, head, put, post and delete.

Each command resolves a (container, object) pair and issues one call at
the account, container or object level. A non-2xx reply raises
OperationError.
"""

import logging
import sys
from typing import BinaryIO, Dict, List, Optional, TextIO, Tuple

import pandas as pd

from swiftbench.configuration import BODY_CHUNK_SIZE
from swiftbench.errors import OperationError
from swiftbench.systems.base import ObjectStorageSystem, StorageResponse

logger = logging.getLogger(__name__)


def parse_path(args: List[str]) -> Tuple[str, str]:
    """Resolve ``container object`` or ``container/object`` arguments.

    The arguments are joined with ``/`` and split on the first one, so
    object names may themselves contain slashes.
    """
    path = ""
    for arg in args:
        if not path:
            path = arg
        elif path.endswith("/"):
            path += arg
        else:
            path += "/" + arg
    container, _, obj = path.partition("/")
    return container, obj


def target(container: str, obj: str) -> str:
    if obj:
        return f"{container}/{obj}"
    return container


async def check(method: str, path: str, response: StorageResponse) -> None:
    """Raise OperationError for a non-2xx response, consuming its body."""
    logger.debug(f"X-Trans-Id: {response.trans_id!r}")
    if not response.ok:
        async with response:
            body = await response.text()
        raise OperationError(method, path, response.status, body)


def format_headers(response: StorageResponse) -> str:
    """Status line followed by the sorted, aligned header lines."""
    keys = sorted(set(response.headers.keys()))
    rows = [(f"{key}:", value) for key in keys for value in response.headers.getall(key)]
    lines = [f"{response.status} {response.reason}"]
    width = max((len(name) for name, _ in rows), default=0)
    lines.extend(f"{name.ljust(width)} {value}" for name, value in rows)
    return "\n".join(lines) + "\n"


def format_table(rows: List[List], columns: List[str]) -> str:
    if not rows:
        return " ".join(columns) + "\n"
    return pd.DataFrame(rows, columns=columns).to_string(index=False) + "\n"


async def auth(storage: ObjectStorageSystem, out: TextIO = None) -> None:
    out = out or sys.stdout
    urls = storage.get_urls()
    if len(urls) == 0:
        out.write("Account URL:\n")
    elif len(urls) == 1:
        out.write(f"Account URL: {urls[0]}\n")
    else:
        out.write(f"Account URLs: {' '.join(urls)}\n")
    token = storage.get_token()
    if token:
        out.write(f"Token: {token}\n")


async def stream_body(response: StorageResponse, sink: BinaryIO) -> int:
    written = 0
    async with response:
        async for chunk in response.iter_chunked(BODY_CHUNK_SIZE):
            sink.write(chunk)
            written += len(chunk)
    sink.flush()
    return written


async def get(
    storage: ObjectStorageSystem,
    container: str = "",
    obj: str = "",
    headers: Optional[Dict[str, str]] = None,
    raw: bool = False,
    names_only: bool = False,
    marker: str = "",
    end_marker: str = "",
    limit: int = 0,
    prefix: str = "",
    delimiter: str = "",
    reverse: bool = False,
    out: TextIO = None,
    binary_out: BinaryIO = None,
) -> None:
    """Print a listing, or stream an object (or a raw listing) to stdout.

    Args:
        storage: Authenticated storage system
        container: Container name; empty for the account
        obj: Object name; empty for a listing
        headers: Extra request headers
        raw: Print the status line and headers followed by the unparsed body
        names_only: In listings, print only the names
        marker, end_marker, limit, prefix, delimiter, reverse: Listing parameters
        out: Text stream for listings and headers (default: stdout)
        binary_out: Byte stream for bodies (default: stdout's buffer)
    """
    out = out or sys.stdout
    binary_out = binary_out or sys.stdout.buffer
    listing_args = dict(marker=marker, end_marker=end_marker, limit=limit, prefix=prefix,
                        delimiter=delimiter, reverse=reverse, headers=headers)
    path = target(container, obj)

    if raw or obj:
        if obj:
            response = await storage.get_object(container, obj, headers)
        elif container:
            response = await storage.get_container_raw(container, **listing_args)
        else:
            response = await storage.get_account_raw(**listing_args)
        await check("GET", path, response)
        if raw or not obj:
            out.write(format_headers(response))
            out.flush()
        await stream_body(response, binary_out)
        return

    if container:
        listing = await storage.get_container(container, **listing_args)
        await check("GET", path, listing.response)
        if names_only:
            out.writelines(f"{entry.display_name}\n" for entry in listing.entries)
            return
        rows = [
            [entry.subdir, "", "", "", ""] if entry.subdir
            else [entry.name, entry.bytes, entry.content_type, entry.last_modified, entry.hash]
            for entry in listing.entries
        ]
        out.write(format_table(rows, ["Name", "Bytes", "Content Type", "Last Modified", "Hash"]))
        return

    listing = await storage.get_account(**listing_args)
    await check("GET", path, listing.response)
    if names_only:
        out.writelines(f"{entry.name}\n" for entry in listing.entries)
        return
    rows = [[entry.name, entry.count, entry.bytes] for entry in listing.entries]
    out.write(format_table(rows, ["Name", "Count", "Bytes"]))


async def head(storage: ObjectStorageSystem, container: str = "", obj: str = "",
               headers: Optional[Dict[str, str]] = None, out: TextIO = None) -> None:
    out = out or sys.stdout
    if obj:
        response = await storage.head_object(container, obj, headers)
    elif container:
        response = await storage.head_container(container, headers)
    else:
        response = await storage.head_account(headers)
    await check("HEAD", target(container, obj), response)
    async with response:
        await response.drain()
    out.write(format_headers(response))


async def put(storage: ObjectStorageSystem, container: str = "", obj: str = "",
              headers: Optional[Dict[str, str]] = None, body=None) -> None:
    """Create the account or container, or write an object from body (default: stdin)."""
    if obj:
        response = await storage.put_object(container, obj, headers,
                                            body if body is not None else sys.stdin.buffer)
    elif container:
        response = await storage.put_container(container, headers)
    else:
        response = await storage.put_account(headers)
    await check("PUT", target(container, obj), response)
    response.close()


async def post(storage: ObjectStorageSystem, container: str = "", obj: str = "",
               headers: Optional[Dict[str, str]] = None) -> None:
    if obj:
        response = await storage.post_object(container, obj, headers)
    elif container:
        response = await storage.post_container(container, headers)
    else:
        response = await storage.post_account(headers)
    await check("POST", target(container, obj), response)
    response.close()


async def delete(storage: ObjectStorageSystem, container: str = "", obj: str = "",
                 headers: Optional[Dict[str, str]] = None) -> None:
    if obj:
        response = await storage.delete_object(container, obj, headers)
    elif container:
        response = await storage.delete_container(container, headers)
    else:
        response = await storage.delete_account(headers)
    await check("DELETE", target(container, obj), response)
    response.close()
