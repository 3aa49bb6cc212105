"""
Lock-protected random source for object sizes and object bodies.
"""

import random
import threading
import time
from typing import AsyncIterator, Optional

from swiftbench.configuration import BODY_CHUNK_SIZE


class RandomSource:
    """A random generator that many workers can share safely.

    The underlying generator is never handed out; callers only get sizes
    and bytes, each produced under the internal lock.
    """

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(time.time_ns() if seed is None else seed)
        self._lock = threading.Lock()

    def size_between(self, size: int, max_size: int) -> int:
        """Return size, or a uniform value in [size, max_size) when max_size > size."""
        if max_size <= size:
            return size
        with self._lock:
            return size + self._random.randrange(max_size - size)

    def read(self, length: int) -> bytes:
        if length <= 0:
            return b""
        with self._lock:
            return self._random.getrandbits(length * 8).to_bytes(length, "little")

    async def body(self, length: int, chunk_size: int = BODY_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Stream exactly length random bytes in chunks."""
        remaining = length
        while remaining > 0:
            chunk = self.read(min(chunk_size, remaining))
            remaining -= len(chunk)
            yield chunk
