""" MongoDB backed version store.

The store is split into one helper collection per concern: the version log,
the branch pointers, the per content path metadata and the write locks.
Only :class:`MongoVersionStore` is meant to be used directly.
"""

from .base import _BaseTrackerCollection
from .branches import BranchesCollection
from .lock import LockCollection
from .metadata import MetadataCollection
from .versions import VersionsCollection
from .store import MongoVersionStore

__all__ = [
    '_BaseTrackerCollection',
    'BranchesCollection',
    'LockCollection',
    'MetadataCollection',
    'VersionsCollection',
    'MongoVersionStore',
]
