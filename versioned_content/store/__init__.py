from .base import VersionStore
from .memory import InMemoryVersionStore
from .mongo import MongoVersionStore

__all__ = ['VersionStore', 'InMemoryVersionStore', 'MongoVersionStore']
