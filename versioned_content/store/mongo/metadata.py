from typing import Optional

import pymongo
from pymongo import ReturnDocument

from versioned_content.models import Publication
from versioned_content.store.mongo.base import _BaseTrackerCollection
from versioned_content.utils.serialization import publication_from_document


class MetadataCollection(_BaseTrackerCollection):
    """Stores per content path metadata.

    One document per content path keeps the counter used to number versions
    and the published pointer::

        {
            content_path: 'docs/a.md',
            version_counter: 4,
            published_version_id: '...',
            publisher_id: '...',
            published_at: ISODate(...)
        }

    """

    _NAME_TEMPLATE = '__metadata_{}'

    def build(self) -> bool:
        created = super().build()
        self._collection.create_index(
            [('content_path', pymongo.ASCENDING)], unique=True
        )
        return created

    def next_version_number(self, content_path: str) -> int:
        """Atomically increment and return the version counter of a path."""
        doc = self._collection.find_one_and_update(
            filter={'content_path': content_path},
            update={'$inc': {'version_counter': 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return doc['version_counter']

    def get_publication(self, content_path: str) -> Optional[Publication]:
        doc = self._collection.find_one({'content_path': content_path})
        if doc is None or doc.get('published_version_id') is None:
            return None
        return publication_from_document(doc)

    def set_publication(
        self, content_path: str, publication: Publication
    ) -> None:
        self._collection.find_one_and_update(
            filter={'content_path': content_path},
            update={'$set': {
                'published_version_id': publication.version_id,
                'publisher_id': publication.publisher_id,
                'published_at': publication.published_at,
            }},
            upsert=True,
        )
