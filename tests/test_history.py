import threading
from unittest import mock

from tests.common import ADA, ALAN, GRACE, PATH, _BaseTest
from versioned_content.config import EngineConfig
from versioned_content.errors import (
    BranchNotFound,
    ContentNotFound,
    EmptyContent,
    InvalidBranch,
    StaleParentVersion,
    TransientStorageError,
    ValidationError,
    VersionNotFound,
)
from versioned_content.models import (
    ChangeImpact,
    LineRange,
    Modification,
    VersionStatus,
)


class TestCreateVersion(_BaseTest):

    def test_first_version(self):
        v1 = self.commit("# Guide\nA\nB", message='init')

        self.assertEqual((), v1.parent_version_ids)
        self.assertEqual(1, v1.number)
        self.assertEqual('main', v1.branch_name)
        self.assertEqual(VersionStatus.DRAFT, v1.status)
        self.assertEqual('init', v1.message)
        self.assertEqual('Guide', v1.metadata.title)
        self.assertEqual(
            [Modification('content', LineRange(1, 1), '', "# Guide\nA\nB",
                          ChangeImpact.MINOR)],
            list(v1.changes),
        )
        trunk = self.engine.get_branch(PATH, 'main')
        self.assertEqual(v1.id, trunk.head_version_id)
        self.assertEqual(v1.branch_id, trunk.id)

    def test_versions_chain(self):
        v1 = self.commit("A\nB\nC")
        v2 = self.commit("A\nB2\nC", v1)

        self.assertEqual((v1.id,), v2.parent_version_ids)
        self.assertEqual(2, v2.number)
        self.assertEqual(v1.branch_id, v2.branch_id)
        self.assertEqual(
            [Modification('content', LineRange(2, 2), 'B', 'B2',
                          ChangeImpact.MINOR)],
            list(v2.changes),
        )

    def test_described_changes_are_kept(self):
        v1 = self.commit("A")
        change = Modification('intro', LineRange(1, 1), 'A', 'Z',
                              ChangeImpact.MAJOR)
        v2 = self.engine.create_version(PATH, "Z", ADA, [change], v1.id)
        self.assertEqual((change,), v2.changes)

    def test_empty_content(self):
        with self.assertRaises(EmptyContent):
            self.commit("")
        self.assertFalse(self.store.has_history(PATH))

    def test_stale_parent(self):
        v1 = self.commit("A")
        v2 = self.commit("B", v1)

        with self.assertRaises(StaleParentVersion) as ctx:
            self.commit("C", v1)
        self.assertEqual(v1.id, ctx.exception.expected)
        self.assertEqual(v2.id, ctx.exception.actual)
        self.assertEqual(
            2, self.engine.get_version_history(PATH).total_versions
        )

    def test_missing_expected_parent_when_history_exists(self):
        self.commit("A")
        with self.assertRaises(StaleParentVersion):
            self.commit("B")

    def test_unknown_parent(self):
        self.commit("A")
        with self.assertRaises(VersionNotFound):
            self.engine.create_version(PATH, "B", ADA, None, 'nope')

    def test_unknown_branch(self):
        v1 = self.commit("A")
        with self.assertRaises(BranchNotFound):
            self.commit("B", v1, branch_name='feature')
        with self.assertRaises(BranchNotFound):
            self.engine.create_version(
                'docs/new.md', "A", ADA, branch_name='feature'
            )

    def test_merge_parent_needs_a_first_parent(self):
        with self.assertRaises(ValidationError):
            self.engine.create_version(PATH, "A", ADA, merge_parent_id='x')

    def test_content_paths_are_independent(self):
        a1 = self.commit("A")
        b1 = self.engine.create_version('docs/b.md', "B", ALAN)
        self.assertEqual(1, a1.number)
        self.assertEqual(1, b1.number)
        with self.assertRaises(VersionNotFound):
            self.engine.get_version('docs/b.md', a1.id)

    def test_concurrent_commits_on_the_same_parent(self):
        v1 = self.commit("A")
        barrier = threading.Barrier(8)
        outcomes = []

        def commit(i):
            barrier.wait()
            try:
                self.commit(f"A\n{i}", v1)
                outcomes.append('ok')
            except StaleParentVersion:
                outcomes.append('stale')

        threads = [threading.Thread(target=commit, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(1, outcomes.count('ok'))
        self.assertEqual(7, outcomes.count('stale'))
        self.assertEqual(
            2, self.engine.get_version_history(PATH).total_versions
        )

    def test_version_graph_is_acyclic(self):
        v = self.commit("A")
        for i in range(5):
            v = self.commit(f"A\n{i}", v)

        seen = set()
        for version in self.engine.get_version_history(PATH).versions:
            self.assertEqual(1 if version.number > 1 else 0,
                             len(version.parent_version_ids))
            for parent_id in version.parent_version_ids:
                self.assertIn(parent_id, seen)
            seen.add(version.id)


class TestRetries(_BaseTest):

    def make_config(self):
        return EngineConfig(storage_retries=3, retry_backoff=0.0)

    def test_transient_errors_are_retried(self):
        original = self.store.append_version
        calls = []

        def flaky(version, expected_head):
            calls.append(version.id)
            if len(calls) < 3:
                raise TransientStorageError('connection reset')
            return original(version, expected_head)

        with mock.patch.object(self.store, 'append_version', flaky):
            v1 = self.commit("A")
        self.assertEqual(3, len(calls))
        self.assertEqual(v1, self.engine.get_version(PATH, v1.id))

    def test_retries_are_bounded(self):
        with mock.patch.object(
            self.store, 'append_version',
            side_effect=TransientStorageError('down'),
        ) as append:
            with self.assertRaises(TransientStorageError):
                self.commit("A")
        self.assertEqual(3, append.call_count)
        self.assertFalse(self.store.has_history(PATH))

    def test_conflicts_are_not_retried(self):
        v1 = self.commit("A")
        self.commit("B", v1)
        with mock.patch.object(
            self.store, 'append_version', wraps=self.store.append_version
        ) as append:
            with self.assertRaises(StaleParentVersion):
                self.commit("C", v1)
        self.assertEqual(1, append.call_count)


class TestPublish(_BaseTest):

    def test_publish(self):
        v1 = self.commit("A")
        v2 = self.commit("B", v1)

        self.assertTrue(self.engine.publish_version(PATH, v1.id, GRACE))
        history = self.engine.get_version_history(PATH)
        self.assertEqual(v1.id, history.published_version.id)
        self.assertEqual(VersionStatus.PUBLISHED,
                         history.published_version.status)
        self.assertEqual(VersionStatus.DRAFT, history.latest_version.status)
        self.assertEqual(v2.id, history.latest_version.id)
        self.assertEqual(
            VersionStatus.PUBLISHED,
            self.engine.get_version(PATH, v1.id).status,
        )

        # Publishing another version moves the pointer
        self.engine.publish_version(PATH, v2.id, GRACE)
        self.assertEqual(v2.id, self.engine.get_published_version(PATH).id)
        self.assertEqual(
            VersionStatus.DRAFT, self.engine.get_version(PATH, v1.id).status
        )

    def test_publish_unknown_version(self):
        self.commit("A")
        with self.assertRaises(VersionNotFound):
            self.engine.publish_version(PATH, 'nope', GRACE)
        with self.assertRaises(ContentNotFound):
            self.engine.publish_version('docs/none.md', 'nope', GRACE)

    def test_publish_requires_the_trunk(self):
        v1 = self.commit("A")
        self.engine.create_branch(PATH, 'feature', '', v1.id, ADA)
        v1b = self.commit("B", v1, branch_name='feature')

        with self.assertRaises(InvalidBranch):
            self.engine.publish_version(PATH, v1b.id, GRACE)
        self.assertIsNone(self.engine.get_published_version(PATH))

        # Once merged, the branch version is part of the trunk history
        self.engine.merge_branch(PATH, 'feature', 'main')
        self.assertTrue(self.engine.publish_version(PATH, v1b.id, GRACE))


class TestRollback(_BaseTest):

    def test_rollback(self):
        v1 = self.commit("A\nB\nC")
        v2 = self.commit("A\nB2\nC", v1)
        v3 = self.commit("A\nB2\nC\nD", v2)

        v4 = self.engine.rollback_to_version(PATH, v1.id, GRACE)

        self.assertEqual(v1.content, v4.content)
        self.assertEqual((v3.id,), v4.parent_version_ids)
        self.assertEqual('Rollback to version 1', v4.message)
        self.assertEqual(
            (Modification('full-content', LineRange(1, 4), v3.content,
                          v1.content, ChangeImpact.MAJOR),),
            v4.changes,
        )
        history = self.engine.get_version_history(PATH)
        self.assertEqual(4, history.total_versions)
        self.assertEqual([v1, v2, v3], list(history.versions[:3]))
        self.assertEqual(v4.id, history.latest_version.id)

    def test_rollback_unknown_version(self):
        self.commit("A")
        with self.assertRaises(VersionNotFound):
            self.engine.rollback_to_version(PATH, 'nope', GRACE)


class TestReads(_BaseTest):

    def test_history_of_unknown_content(self):
        with self.assertRaises(ContentNotFound):
            self.engine.get_version_history(PATH)
        with self.assertRaises(ContentNotFound):
            self.engine.get_version(PATH, 'nope')
        with self.assertRaises(ContentNotFound):
            self.engine.get_log(PATH)
        self.assertIsNone(self.engine.get_published_version(PATH))

    def test_history_snapshot(self):
        v1 = self.commit("A")
        self.engine.create_branch(PATH, 'feature', 'desc', v1.id, ADA)
        v2 = self.commit("B", v1)

        history = self.engine.get_version_history(PATH)
        self.assertEqual(PATH, history.content_path)
        self.assertEqual('main', history.trunk)
        self.assertEqual({'main': v2.id, 'feature': v1.id}, history.branches)
        self.assertEqual(v2, history.latest_version)
        self.assertIsNone(history.published_version)
        self.assertEqual(2, history.total_versions)
        self.assertEqual(v2, self.engine.get_latest_version(PATH))

    def test_log(self):
        v1 = self.commit("A")
        self.engine.create_branch(PATH, 'feature', '', v1.id, ADA)
        v2 = self.commit("B", v1)
        v3 = self.commit("C", v2)
        v1b = self.commit("Z", v1, branch_name='feature')

        self.assertEqual(
            [v3.id, v2.id, v1.id], [v.id for v in self.engine.get_log(PATH)]
        )
        self.assertEqual(
            [v1b.id, v1.id],
            [v.id for v in self.engine.get_log(PATH, 'feature')],
        )
        with self.assertRaises(BranchNotFound):
            self.engine.get_log(PATH, 'nope')

    def test_ancestors(self):
        v1 = self.commit("A")
        v2 = self.commit("B", v1)
        v3 = self.commit("C", v2)
        self.assertEqual(
            {v3.id: 0, v2.id: 1, v1.id: 2},
            self.engine.history.ancestors(PATH, v3.id),
        )
