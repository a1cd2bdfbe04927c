from typing import Iterable, List, Optional

import pymongo

from versioned_content.models import ContentVersion
from versioned_content.store.mongo.base import _BaseTrackerCollection
from versioned_content.utils.serialization import (
    version_from_document,
    version_to_document,
)


class VersionsCollection(_BaseTrackerCollection):
    """The append-only log of versions of every content path.

    The documents in this collection have the following format::

        {
            _id: 'version id',
            content_path: 'docs/a.md',
            number: 3,
            parent_version_ids: ['...'],
            branch_id: '...',
            branch_name: 'main',
            content: '...',
            changes: [{kind: 'modification', ...}],
            author: {id: '...', name: '...', ...},
            created_at: ISODate(...),
            message: '...',
            rollback_of: 'version id' | null
        }

    Documents are inserted once and never updated, before the branch head is
    moved to them. A document is removed only when the head provably does not
    point at it after a failed swap. Readers list versions through
    :meth:`find_reachable_versions`, so documents no branch leads to are
    never part of a history.
    """

    _NAME_TEMPLATE = '__versions_{}'

    def build(self) -> bool:
        created = super().build()
        self._collection.create_index(
            [('content_path', pymongo.ASCENDING),
             ('number', pymongo.ASCENDING)],
            unique=True,
        )
        return created

    def insert_version(self, version: ContentVersion) -> None:
        self._collection.insert_one(version_to_document(version))

    def delete_version(self, content_path: str, version_id: str) -> None:
        self._collection.delete_one(
            {'_id': version_id, 'content_path': content_path}
        )

    def find_version(
        self, content_path: str, version_id: str
    ) -> Optional[ContentVersion]:
        doc = self._collection.find_one(
            {'_id': version_id, 'content_path': content_path}
        )
        if doc is None:
            return None
        return version_from_document(doc)

    def find_versions(self, content_path: str) -> List[ContentVersion]:
        cursor = self._collection.find({'content_path': content_path}).sort(
            'number', pymongo.ASCENDING
        )
        return [version_from_document(doc) for doc in cursor]

    def find_reachable_versions(
        self, content_path: str, heads: Iterable[str]
    ) -> List[ContentVersion]:
        """Return the versions that one of `heads` leads to, by number."""
        versions = self.find_versions(content_path)
        by_id = {v.id: v for v in versions}
        reachable = set()
        pending = [h for h in heads if h in by_id]
        while pending:
            version_id = pending.pop()
            if version_id in reachable:
                continue
            reachable.add(version_id)
            pending.extend(
                p for p in by_id[version_id].parent_version_ids
                if p in by_id
            )
        return [v for v in versions if v.id in reachable]
