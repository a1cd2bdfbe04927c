import warnings

from tests.common import ADA, GRACE
from tests.test_store.mongomock_database import MongomockDatabaseSetup
from versioned_content import ContentVersioningEngine
from versioned_content.config import EngineConfig
from versioned_content.errors import (
    ConflictOnCommit,
    InvalidBranch,
    StaleParentVersion,
)
from versioned_content.models import (
    ChangeImpact,
    DiffStats,
    InsertText,
    LineRange,
    Modification,
    VersionStatus,
)
from versioned_content.store import MongoVersionStore

PATH = 'docs/a.md'


class TestEngineOnMongo(MongomockDatabaseSetup):
    """End to end scenarios against the MongoDB store."""

    def setUp(self) -> None:
        self.store = MongoVersionStore(
            self.database, 'engine', lock_poll_interval=0.001
        )
        self.engine = ContentVersioningEngine(
            self.store, EngineConfig(retry_backoff=0.0)
        )
        self.v1 = self.engine.create_version(PATH, "A\nB\nC", ADA)

    def tearDown(self) -> None:
        self.engine.close()
        self.store.drop()

    def test_generate_diff(self):
        v2 = self.engine.create_version(
            PATH, "A\nB2\nC", ADA, expected_parent_version_id=self.v1.id
        )
        diff = self.engine.generate_diff(PATH, self.v1.id, v2.id)

        self.assertEqual(
            (Modification('content', LineRange(2, 2), 'B', 'B2',
                          ChangeImpact.MINOR),),
            diff.changes,
        )
        self.assertEqual(DiffStats(added=0, removed=0, modified=1),
                         diff.stats)

    def test_stale_parent(self):
        self.engine.create_version(
            PATH, "A\nB2\nC", ADA, expected_parent_version_id=self.v1.id
        )
        with self.assertRaises(StaleParentVersion):
            self.engine.create_version(
                PATH, "A\nB3\nC", GRACE,
                expected_parent_version_id=self.v1.id,
            )
        self.assertEqual(2, self.engine.get_version_history(PATH)
                         .total_versions)

    def test_disjoint_merge(self):
        self.engine.create_branch(PATH, 'feature', '', self.v1.id, GRACE)
        v2 = self.engine.create_version(
            PATH, "A2\nB\nC", ADA, expected_parent_version_id=self.v1.id
        )
        v1b = self.engine.create_version(
            PATH, "A\nB\nC2", GRACE, expected_parent_version_id=self.v1.id,
            branch_name='feature',
        )

        result = self.engine.merge_branch(PATH, 'feature', 'main')

        self.assertTrue(result.succeeded)
        v3 = result.merged_version
        self.assertEqual((v2.id, v1b.id), v3.parent_version_ids)
        self.assertEqual("A2\nB\nC2", v3.content)
        self.assertEqual(v3.id, result.branch.head_version_id)
        self.assertEqual(v3.id, self.engine.get_latest_version(PATH).id)

    def test_conflicting_merge(self):
        self.engine.create_branch(PATH, 'feature', '', self.v1.id, GRACE)
        v2 = self.engine.create_version(
            PATH, "A\nB2\nC", ADA, expected_parent_version_id=self.v1.id
        )
        v1b = self.engine.create_version(
            PATH, "A\nBx\nC", GRACE, expected_parent_version_id=self.v1.id,
            branch_name='feature',
        )

        result = self.engine.merge_branch(PATH, 'feature', 'main')

        self.assertFalse(result.succeeded)
        self.assertIsNone(result.merged_version)
        (conflict,) = result.conflict.conflicts
        self.assertEqual('Bx', conflict.source.new_content)
        self.assertEqual('B2', conflict.target.new_content)

        history = self.engine.get_version_history(PATH)
        self.assertEqual(3, history.total_versions)
        self.assertEqual({'main': v2.id, 'feature': v1b.id},
                         history.branches)

    def test_publish_and_rollback(self):
        v2 = self.engine.create_version(
            PATH, "A\nB2\nC", ADA, expected_parent_version_id=self.v1.id
        )
        self.assertTrue(self.engine.publish_version(PATH, self.v1.id, GRACE))
        self.assertEqual(
            VersionStatus.PUBLISHED,
            self.engine.get_version(PATH, self.v1.id).status,
        )

        v3 = self.engine.rollback_to_version(PATH, self.v1.id, GRACE)
        self.assertEqual(self.v1.content, v3.content)
        self.assertEqual((v2.id,), v3.parent_version_ids)
        self.assertEqual(
            self.v1.id, self.engine.get_latest_version(PATH).rollback_of
        )
        self.assertEqual(
            [v3.id, v2.id, self.v1.id],
            [v.id for v in self.engine.get_log(PATH)],
        )

    def test_publish_outside_trunk(self):
        self.engine.create_branch(PATH, 'feature', '', self.v1.id, GRACE)
        v1b = self.engine.create_version(
            PATH, "A\nB\nC2", GRACE, expected_parent_version_id=self.v1.id,
            branch_name='feature',
        )
        with self.assertRaises(InvalidBranch):
            self.engine.publish_version(PATH, v1b.id, GRACE)

    def test_collaborative_session(self):
        session = self.engine.start_collaborative_session(PATH, ADA)
        self.engine.join_collaborative_session(session.id, GRACE)
        self.engine.apply_edit(session.id, GRACE.id, InsertText(5, '\nD'))
        self.engine.leave_collaborative_session(session.id, GRACE.id)
        self.engine.leave_collaborative_session(session.id, ADA.id)

        latest = self.engine.get_latest_version(PATH)
        self.assertEqual(session.committed_version_id, latest.id)
        self.assertEqual("A\nB\nC\nD", latest.content)

    def test_collaborative_session_conflict(self):
        session = self.engine.start_collaborative_session(PATH, ADA)
        self.engine.apply_edit(session.id, ADA.id, InsertText(0, '>'))
        self.engine.create_version(
            PATH, "A\nB2\nC", GRACE, expected_parent_version_id=self.v1.id
        )

        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            with self.assertRaises(ConflictOnCommit) as ctx:
                self.engine.end_collaborative_session(session.id)
        self.assertEqual(">A\nB\nC", ctx.exception.pending_content)
