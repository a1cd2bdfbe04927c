from __future__ import annotations

import datetime
from typing import List, Optional

import pymongo
from pymongo.errors import DuplicateKeyError

from versioned_content.errors import BranchNotFound, DuplicateBranchName
from versioned_content.models import Branch, BranchStatus
from versioned_content.store.mongo.base import _BaseTrackerCollection
from versioned_content.utils.serialization import (
    branch_from_document,
    branch_to_document,
)


class BranchesCollection(_BaseTrackerCollection):
    """Stores information about the branch pointers.

    Branches are named pointers to a head version of one content path. The
    pair ``(content_path, name)`` is unique, and the head pointer only ever
    moves through :meth:`swap_head`, an atomic compare-and-swap on the stored
    head.
    """

    _NAME_TEMPLATE = '__branches_{}'

    def build(self) -> bool:
        created = super().build()
        self._collection.create_index(
            [('content_path', pymongo.ASCENDING),
             ('name', pymongo.ASCENDING)],
            unique=True,
        )
        return created

    def has_branch(self, content_path: str, name: str) -> bool:
        """Check whether a branch with the provided name exists."""
        return self._collection.find_one(
            {'content_path': content_path, 'name': name}
        ) is not None

    def has_branches(self, content_path: str) -> bool:
        return self._collection.find_one(
            {'content_path': content_path}
        ) is not None

    def create_branch(self, branch: Branch) -> None:
        """Create a new branch pointer.

        :raises DuplicateBranchName: If a branch with the same name already
            exists for the content path.
        """
        try:
            self._collection.insert_one(branch_to_document(branch))
        except DuplicateKeyError as e:
            raise DuplicateBranchName(branch.content_path, branch.name) from e

    def get_branch(self, content_path: str, name: str) -> Optional[Branch]:
        doc = self._collection.find_one(
            {'content_path': content_path, 'name': name}
        )
        if doc is None:
            return None
        return branch_from_document(doc)

    def get_branches(self, content_path: str) -> List[Branch]:
        cursor = self._collection.find({'content_path': content_path}).sort(
            'created_at', pymongo.ASCENDING
        )
        return [branch_from_document(doc) for doc in cursor]

    def swap_head(
        self,
        content_path: str,
        name: str,
        expected_head: Optional[str],
        new_head: str,
        updated_at: datetime.datetime,
    ) -> bool:
        """Move the head of a branch if it still points at `expected_head`.

        :return: Whether the head was moved.
        """
        ret = self._collection.find_one_and_update(
            filter={
                'content_path': content_path,
                'name': name,
                'head_version_id': expected_head,
            },
            update={'$set': {
                'head_version_id': new_head,
                'updated_at': updated_at,
            }},
        )
        return ret is not None

    def set_status(
        self, content_path: str, name: str, status: BranchStatus
    ) -> Branch:
        """Update the status of a branch.

        :raises BranchNotFound: If no such branch exists.
        """
        ret = self._collection.find_one_and_update(
            filter={'content_path': content_path, 'name': name},
            update={'$set': {'status': status.value}},
        )
        if ret is None:
            raise BranchNotFound(content_path, name)
        ret['status'] = status.value
        return branch_from_document(ret)

    def content_paths(self) -> List[str]:
        return sorted(self._collection.distinct('content_path'))
