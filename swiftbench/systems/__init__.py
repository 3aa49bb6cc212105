"""
Storage systems: the abstract async interface and the Swift client.
"""

from .base import (
    ContainerRecord,
    Listing,
    ObjectRecord,
    ObjectStorageSystem,
    StorageResponse,
    StubResponse,
)
from .swift import SwiftSystem

__all__ = ['ContainerRecord', 'Listing', 'ObjectRecord', 'ObjectStorageSystem',
           'StorageResponse', 'StubResponse', 'SwiftSystem']
