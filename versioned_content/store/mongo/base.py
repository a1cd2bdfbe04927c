from pymongo.collection import Collection
from pymongo.database import Database


class _BaseTrackerCollection:
    """Base class for all the collections backing a MongoDB version store.

    Each tracker collection is named after the namespace of the store it
    belongs to, so several independent stores can share a database.
    """

    _NAME_TEMPLATE = None

    def __init__(self, database: Database, namespace: str) -> None:
        self._database = database
        self._namespace = namespace
        self._collection: Collection = database[self.format_name(namespace)]

    def __eq__(self, other) -> bool:
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    @classmethod
    def format_name(cls, namespace: str) -> str:
        """Return this collection's name.

        Formats and returns this collection's name by appending the namespace
        of the version store to it.

        :param namespace: The namespace of the version store.
        :return: The name of this collection
        """
        return cls._NAME_TEMPLATE.format(namespace)

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def collection(self) -> Collection:
        return self._collection

    def exists(self) -> bool:
        """Check whether this collection exists in the database."""
        return self.name in self._database.list_collection_names()

    def build(self) -> bool:
        """Create the indexes this collection relies on.

        :return: ``True`` if the collection did not exist before.
        """
        return not self.exists()

    def drop(self) -> None:
        self._collection.drop()
