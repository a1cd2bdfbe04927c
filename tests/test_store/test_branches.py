import datetime

from tests.test_store.mongomock_database import MongomockDatabaseSetup
from versioned_content.errors import BranchNotFound, DuplicateBranchName
from versioned_content.models import Branch, BranchStatus
from versioned_content.store.mongo import BranchesCollection

_NOW = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)


def _branch(name='main', head='v1', path='docs/a.md'):
    return Branch(
        id=f'{path}:{name}',
        content_path=path,
        name=name,
        description='',
        base_version_id='v1',
        head_version_id=head,
        author_id='ada',
        created_at=_NOW,
        updated_at=_NOW,
    )


class TestBranchesCollectionUnitTests(MongomockDatabaseSetup):

    def setUp(self):
        self.col = BranchesCollection(self.database, 'content')
        self.col.build()

    def tearDown(self):
        self.col.drop()

    def test_create_and_get_branch(self):
        self.assertFalse(self.col.has_branches('docs/a.md'))
        self.col.create_branch(_branch())

        self.assertTrue(self.col.has_branch('docs/a.md', 'main'))
        self.assertFalse(self.col.has_branch('docs/a.md', 'feature'))
        self.assertFalse(self.col.has_branches('docs/b.md'))
        self.assertEqual(_branch(), self.col.get_branch('docs/a.md', 'main'))
        self.assertIsNone(self.col.get_branch('docs/a.md', 'feature'))

    def test_branch_names_are_unique_per_content_path(self):
        self.col.create_branch(_branch())
        with self.assertRaises(DuplicateBranchName):
            self.col.create_branch(_branch())
        # Same name on another content path is fine
        self.col.create_branch(_branch(path='docs/b.md'))

    def test_swap_head(self):
        self.col.create_branch(_branch())
        later = _NOW + datetime.timedelta(minutes=1)

        self.assertTrue(
            self.col.swap_head('docs/a.md', 'main', 'v1', 'v2', later)
        )
        branch = self.col.get_branch('docs/a.md', 'main')
        self.assertEqual('v2', branch.head_version_id)
        self.assertEqual(later, branch.updated_at)

        # Stale expected head
        self.assertFalse(
            self.col.swap_head('docs/a.md', 'main', 'v1', 'v3', later)
        )
        self.assertEqual(
            'v2', self.col.get_branch('docs/a.md', 'main').head_version_id
        )

    def test_set_status(self):
        self.col.create_branch(_branch('feature'))
        branch = self.col.set_status(
            'docs/a.md', 'feature', BranchStatus.MERGED
        )
        self.assertEqual(BranchStatus.MERGED, branch.status)
        self.assertEqual(
            BranchStatus.MERGED,
            self.col.get_branch('docs/a.md', 'feature').status,
        )
        with self.assertRaises(BranchNotFound):
            self.col.set_status('docs/a.md', 'nope', BranchStatus.MERGED)
