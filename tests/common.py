from unittest import TestCase

from versioned_content import ContentVersioningEngine
from versioned_content.config import EngineConfig
from versioned_content.models import VersionAuthor
from versioned_content.store import InMemoryVersionStore

PATH = 'docs/a.md'

ADA = VersionAuthor(
    id='ada', name='Ada Lovelace', email='ada@example.com', role='editor',
    expertise=('analysis',),
)
GRACE = VersionAuthor(id='grace', name='Grace Hopper', role='reviewer')
ALAN = VersionAuthor(id='alan', name='Alan Turing')


class _BaseTest(TestCase):
    """Runs every test against a fresh in-memory engine."""

    def make_config(self) -> EngineConfig:
        return EngineConfig(retry_backoff=0.0)

    def setUp(self) -> None:
        self.store = InMemoryVersionStore()
        self.engine = ContentVersioningEngine(self.store, self.make_config())

    def tearDown(self) -> None:
        self.engine.close()

    def commit(self, content, parent=None, author=ADA, **kwargs):
        return self.engine.create_version(
            PATH, content, author,
            expected_parent_version_id=None if parent is None else parent.id,
            **kwargs
        )
