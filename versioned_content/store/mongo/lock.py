import dataclasses
from time import monotonic, sleep
from typing import Optional

from pymongo.errors import DuplicateKeyError

from versioned_content.errors import TransientStorageError
from versioned_content.store.mongo.base import _BaseTrackerCollection


class LockCollection(_BaseTrackerCollection):
    """ Collection holding the write locks of the content paths.

    The documents in this collection have the following format::

        {
            _id: 'docs/a.md'
            locked: True/ False
        }

    Every content path has its own lock document, so writers of different
    content paths never wait for each other. By using atomic updates, the
    store implements a simple locking mechanism that serializes the
    append-version critical section of a single content path across
    processes.

    """

    # The current locking mechanism is not safe against adversarial usage.
    # Any other client can call :meth:`lock_release` before calling
    # :meth:`lock_acquire` to be able to proceed. Since this is only an
    # internal mechanism, and it is not exposed it should be fine for now.

    _NAME_TEMPLATE = '__lock_{}'

    @dataclasses.dataclass
    class SCHEMA:
        _id: str
        locked: bool

    def init_lock(self, content_path: str) -> None:
        """ Initialises the lock without resetting a held lock. """
        try:
            self._collection.update_one(
                filter={'_id': content_path},
                update={'$setOnInsert': {'locked': False}},
                upsert=True,
            )
        except DuplicateKeyError:
            # Another client initialised it concurrently
            pass

    def is_locked(self, content_path: str) -> Optional[bool]:
        doc = self._collection.find_one({'_id': content_path})
        if doc is None:
            return None
        return doc['locked']

    def try_lock_acquire(self, content_path: str) -> bool:
        """ Tries to acquire the lock for the given content path.

        :return: ``True`` if the lock is successfully acquired, ``False`` if
            the lock is held by other process.
        """
        ret = self._collection.find_one_and_update(
            filter={'_id': content_path, 'locked': False},
            update={"$set": {'locked': True}},
        )
        return ret is not None

    def lock_acquire(
        self,
        content_path: str,
        poll_interval: float = 0.1,
        timeout: Optional[float] = None,
    ) -> bool:
        """ Acquires the lock for the given content path.

        :raises TransientStorageError: If the lock could not be acquired
            within `timeout` seconds.
        :param content_path: The content path to lock.
        :param poll_interval: Seconds to wait between attempts.
        :param timeout: Maximum number of seconds to wait, or ``None`` to wait
            forever.
        :return: Whether the process waited for the lock.
        """
        self.init_lock(content_path)
        deadline = None if timeout is None else monotonic() + timeout
        has_waited_for_lock = False
        while not self.try_lock_acquire(content_path):
            has_waited_for_lock = True
            if deadline is not None and monotonic() > deadline:
                raise TransientStorageError(
                    f"Timed out waiting for the write lock of "
                    f"'{content_path}'."
                )
            sleep(poll_interval)
        return has_waited_for_lock

    def lock_release(self, content_path: str) -> bool:
        """ Releases the lock for the given content path.

        :param content_path: The content path to unlock.
        :return: Whether the content path was locked.
        """
        ret = self._collection.find_one_and_update(
            filter={'_id': content_path, 'locked': True},
            update={"$set": {'locked': False}}
        )
        return ret is not None

