from unittest import TestCase

import mongomock


class MongomockDatabaseSetup(TestCase):
    """A `mongomock` database shared by the tests of a test case."""

    client: mongomock.MongoClient
    database: mongomock.Database

    @classmethod
    def setUpClass(cls) -> None:
        cls.client = mongomock.MongoClient()
        cls.database = cls.client['__test__in_memory_db__']

    @classmethod
    def tearDownClass(cls) -> None:
        cls.client.close()
