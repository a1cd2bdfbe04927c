import dataclasses
import logging
from functools import wraps
from typing import List, Optional

from pymongo.database import Database
from pymongo.errors import AutoReconnect, PyMongoError

from versioned_content.errors import (
    BranchNotFound,
    StaleParentVersion,
    StorageError,
    TransientStorageError,
)
from versioned_content.models import (
    Branch,
    BranchStatus,
    ContentVersion,
    Publication,
)
from versioned_content.store.base import VersionStore
from versioned_content.store.mongo.branches import BranchesCollection
from versioned_content.store.mongo.lock import LockCollection
from versioned_content.store.mongo.metadata import MetadataCollection
from versioned_content.store.mongo.versions import VersionsCollection

logger = logging.getLogger(__name__)


def _translate_errors(func):
    """ Reports driver failures as storage errors.

    Network level failures, which the driver reports as
    :class:`~pymongo.errors.AutoReconnect` (or one of its subclasses), are
    transient; everything else coming from the driver is not.
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except AutoReconnect as e:
            raise TransientStorageError(str(e)) from e
        except PyMongoError as e:
            raise StorageError(str(e)) from e

    return wrapper


class MongoVersionStore(VersionStore):
    """ A :class:`VersionStore` backed by MongoDB.

    The store keeps its data in four collections of `database`, all named
    after `namespace`:

    * ``__versions_<namespace>``: the append-only version log;
    * ``__branches_<namespace>``: the branch pointers;
    * ``__metadata_<namespace>``: version counters and published pointers;
    * ``__lock_<namespace>``: one write lock per content path.

    Usage example:

    .. code-block:: python

        import pymongo
        from versioned_content.store import MongoVersionStore

        client = pymongo.MongoClient("mongodb://localhost:27017")
        store = MongoVersionStore(client['cms'], namespace='articles')

    :param database: A :class:`pymongo.database.Database` instance.
    :param namespace: The suffix of the collections of this store.
    :param lock_poll_interval: Seconds between attempts to take the write
        lock of a content path.
    :param lock_timeout: Seconds after which waiting for a write lock fails
        with a transient storage error.
    """

    def __init__(self,
                 database: Database,
                 namespace: str = 'content',
                 lock_poll_interval: float = 0.1,
                 lock_timeout: Optional[float] = 10.0,
                 ) -> None:
        args = database, namespace
        self._versions = VersionsCollection(*args)
        self._branches = BranchesCollection(*args)
        self._metadata = MetadataCollection(*args)
        self._lock = LockCollection(*args)
        self._lock_poll_interval = lock_poll_interval
        self._lock_timeout = lock_timeout

        self._collections = [
            self._versions,
            self._branches,
            self._metadata,
            self._lock,
        ]
        for collection in self._collections:
            collection.build()

    def drop(self) -> None:
        """ Drops all the collections of this store. """
        for collection in self._collections:
            collection.drop()

    @_translate_errors
    def append_version(
        self,
        version: ContentVersion,
        expected_head: Optional[str],
    ) -> ContentVersion:
        path = version.content_path
        self._lock.lock_acquire(
            path,
            poll_interval=self._lock_poll_interval,
            timeout=self._lock_timeout,
        )
        try:
            return self._append_locked(version, expected_head)
        finally:
            self._lock.lock_release(path)

    def _append_locked(
        self,
        version: ContentVersion,
        expected_head: Optional[str],
    ) -> ContentVersion:
        path = version.content_path
        new_path = not self._branches.has_branches(path)
        if new_path:
            if expected_head is not None:
                raise StaleParentVersion(
                    path, version.branch_name,
                    expected=expected_head, actual=None,
                )
        else:
            branch = self._branches.get_branch(path, version.branch_name)
            if branch is None:
                raise BranchNotFound(path, version.branch_name)
            if branch.head_version_id != expected_head:
                raise StaleParentVersion(
                    path, version.branch_name,
                    expected=expected_head, actual=branch.head_version_id,
                )

        number = self._metadata.next_version_number(path)
        stored = dataclasses.replace(version, number=number)
        self._versions.insert_version(stored)

        try:
            if new_path:
                self._branches.create_branch(Branch(
                    id=version.branch_id,
                    content_path=path,
                    name=version.branch_name,
                    description='Trunk',
                    base_version_id=version.id,
                    head_version_id=version.id,
                    author_id=version.author.id,
                    created_at=version.created_at,
                    updated_at=version.created_at,
                ))
                swapped = True
            else:
                swapped = self._branches.swap_head(
                    path,
                    version.branch_name,
                    expected_head=expected_head,
                    new_head=version.id,
                    updated_at=version.created_at,
                )
        except Exception:
            # The write may have been applied even though its reply was lost
            if not self._is_head(path, version):
                self._versions.delete_version(path, version.id)
                raise
            logger.warning(
                "Head of %s on %s was moved to %s despite a driver error",
                path, version.branch_name, version.id,
            )
            swapped = True

        if not swapped:
            # The head moved without holding the lock
            self._versions.delete_version(path, version.id)
            current = self._branches.get_branch(path, version.branch_name)
            raise StaleParentVersion(
                path, version.branch_name,
                expected=expected_head,
                actual=None if current is None else current.head_version_id,
            )
        logger.debug(
            "Appended version %s (#%d) of %s on %s",
            version.id, number, path, version.branch_name,
        )
        return stored

    def _is_head(self, content_path: str, version: ContentVersion) -> bool:
        branch = self._branches.get_branch(content_path, version.branch_name)
        return branch is not None and branch.head_version_id == version.id

    @_translate_errors
    def get_version(
        self, content_path: str, version_id: str
    ) -> Optional[ContentVersion]:
        return self._versions.find_version(content_path, version_id)

    @_translate_errors
    def list_versions(self, content_path: str) -> List[ContentVersion]:
        """Return the versions reachable from a branch head.

        A version record is written before the branch head is moved to it, so
        records that no branch leads to are appends in progress or leftovers
        of an interrupted append. The heads are read first: a version
        committed after that read is not listed.
        """
        heads = [
            b.head_version_id
            for b in self._branches.get_branches(content_path)
        ]
        return self._versions.find_reachable_versions(content_path, heads)

    @_translate_errors
    def has_history(self, content_path: str) -> bool:
        return self._branches.has_branches(content_path)

    @_translate_errors
    def content_paths(self) -> List[str]:
        return self._branches.content_paths()

    @_translate_errors
    def get_branch(self, content_path: str, name: str) -> Optional[Branch]:
        return self._branches.get_branch(content_path, name)

    @_translate_errors
    def list_branches(self, content_path: str) -> List[Branch]:
        return self._branches.get_branches(content_path)

    @_translate_errors
    def create_branch(self, branch: Branch) -> Branch:
        self._branches.create_branch(branch)
        return branch

    @_translate_errors
    def set_branch_status(
        self, content_path: str, name: str, status: BranchStatus
    ) -> Branch:
        return self._branches.set_status(content_path, name, status)

    @_translate_errors
    def get_publication(self, content_path: str) -> Optional[Publication]:
        return self._metadata.get_publication(content_path)

    @_translate_errors
    def set_publication(
        self, content_path: str, publication: Publication
    ) -> None:
        self._metadata.set_publication(content_path, publication)
