import itertools
from unittest import TestCase

from tests.common import ADA, PATH, _BaseTest
from versioned_content.diff import DiffEngine, apply_changes, edit_script
from versioned_content.errors import ValidationError, VersionNotFound
from versioned_content.models import (
    Addition,
    ChangeImpact,
    Deletion,
    DiffStats,
    LineRange,
    Modification,
)


class TestEditScript(TestCase):

    def test_identical(self):
        script = edit_script(['a', 'b'], ['a', 'b'])
        self.assertEqual([('=', 0, 0), ('=', 1, 1)], script)

    def test_script_is_minimal(self):
        a = list('ABCABBA')
        b = list('CBABAC')
        script = edit_script(a, b)
        # The classic example of the Myers paper has D = 5
        self.assertEqual(5, sum(1 for op, _, _ in script if op != '='))

    def test_script_is_deterministic(self):
        a, b = list('xaxbx'), list('axbxa')
        self.assertEqual(edit_script(a, b), edit_script(a, b))


class TestDiff(TestCase):

    def test_single_modification(self):
        changes = DiffEngine.diff("A\nB\nC", "A\nB2\nC")
        self.assertEqual(
            [Modification('content', LineRange(2, 2), 'B', 'B2',
                          ChangeImpact.MINOR)],
            changes,
        )

    def test_no_changes(self):
        self.assertEqual([], DiffEngine.diff("A\nB", "A\nB"))

    def test_addition(self):
        changes = DiffEngine.diff("A\nC", "A\nB\nC")
        self.assertEqual(
            [Addition('content', LineRange(2, 1), 'B', ChangeImpact.MINOR)],
            changes,
        )

    def test_append_at_the_end(self):
        changes = DiffEngine.diff("A", "A\nB\nC")
        self.assertEqual(
            [Addition('content', LineRange(2, 1), 'B\nC', ChangeImpact.MINOR)],
            changes,
        )

    def test_insert_at_the_beginning(self):
        changes = DiffEngine.diff("B", "A\nB")
        self.assertEqual(
            [Addition('content', LineRange(1, 0), 'A', ChangeImpact.MINOR)],
            changes,
        )

    def test_deletion(self):
        changes = DiffEngine.diff("A\nB\nC", "A\nC")
        self.assertEqual(
            [Deletion('content', LineRange(2, 2), 'B', ChangeImpact.MINOR)],
            changes,
        )

    def test_sections_and_impact(self):
        old = "# Title\nintro\n## Usage\n" + "\n".join(
            f"line {i}" for i in range(12)
        )
        new = "# Title\nintro\n## Usage\n" + "\n".join(
            f"LINE {i}" for i in range(12)
        )
        (change,) = DiffEngine.diff(old, new)
        self.assertEqual('Usage', change.section)
        self.assertEqual(ChangeImpact.MAJOR, change.impact)
        self.assertEqual(LineRange(4, 15), change.line_range)

        (change,) = DiffEngine.diff("# Title\nbody", "# Other\nbody")
        self.assertEqual(ChangeImpact.BREAKING, change.impact)

        (change,) = DiffEngine.diff("a\nb\nc\nd", "w\nx\ny\nz")
        self.assertEqual(ChangeImpact.MODERATE, change.impact)

    def test_round_trip(self):
        contents = [
            "",
            "A",
            "A\nB\nC",
            "A\nB2\nC",
            "C\nB\nA",
            "A\n\nB\n",
            "# T\nx\ny\nz\n## S\nw",
            "x\nx\nx\ny",
        ]
        for a, b in itertools.product(contents, repeat=2):
            with self.subTest(a=a, b=b):
                self.assertEqual(b, apply_changes(a, DiffEngine.diff(a, b)))

    def test_changes_are_ordered(self):
        changes = DiffEngine.diff("A\nB\nC\nD\nE", "A2\nB\nC\nE\nF")
        starts = [c.line_range.start for c in changes]
        self.assertEqual(sorted(starts), starts)
        self.assertEqual(3, len(changes))


class TestApplyChanges(TestCase):

    def test_changes_apply_against_old_coordinates(self):
        changes = [
            Modification('content', LineRange(1, 1), 'A', 'A2'),
            Addition('content', LineRange(2, 1), 'X'),
            Deletion('content', LineRange(3, 3), 'C'),
        ]
        self.assertEqual("A2\nX\nB", apply_changes("A\nB\nC", changes))

    def test_insertion_before_a_change_at_the_same_line(self):
        changes = [
            Modification('content', LineRange(2, 2), 'B', 'B2'),
            Addition('content', LineRange(2, 1), 'X'),
        ]
        self.assertEqual("A\nX\nB2", apply_changes("A\nB", changes))

    def test_out_of_bounds(self):
        with self.assertRaises(ValidationError):
            apply_changes("A", [Deletion('content', LineRange(2, 2), 'B')])
        with self.assertRaises(ValidationError):
            apply_changes("A", [Addition('content', LineRange(3, 2), 'B')])

    def test_overlapping_changes(self):
        with self.assertRaises(ValidationError):
            apply_changes("A\nB\nC", [
                Deletion('content', LineRange(1, 2), 'A\nB'),
                Modification('content', LineRange(2, 2), 'B', 'X'),
            ])
        with self.assertRaises(ValidationError):
            apply_changes("A\nB\nC", [
                Deletion('content', LineRange(1, 2), 'A\nB'),
                Addition('content', LineRange(2, 1), 'X'),
            ])

    def test_content_mismatch(self):
        with self.assertRaises(ValidationError):
            apply_changes("A\nB", [
                Modification('content', LineRange(1, 1), 'Z', 'X')
            ])


class TestGenerateDiff(_BaseTest):

    def test_generate_diff(self):
        v1 = self.commit("A\nB\nC")
        v2 = self.commit("A\nB2\nC", v1)

        version_diff = self.engine.generate_diff(PATH, v1.id, v2.id)
        self.assertEqual(v1.id, version_diff.from_version_id)
        self.assertEqual(v2.id, version_diff.to_version_id)
        self.assertEqual(1, len(version_diff.changes))
        self.assertIsInstance(version_diff.changes[0], Modification)
        self.assertEqual(LineRange(2, 2), version_diff.changes[0].line_range)
        self.assertEqual(DiffStats(added=0, removed=0, modified=1),
                         version_diff.stats)

    def test_round_trip_over_versions(self):
        contents = ["A\nB\nC", "A\nB2\nC", "B2\nC\nD", "# T\nB2\nD\nE"]
        versions = [self.commit(contents[0])]
        for content in contents[1:]:
            versions.append(self.commit(content, versions[-1]))

        for v1, v2 in itertools.product(versions, repeat=2):
            changes = self.engine.generate_diff(PATH, v1.id, v2.id).changes
            self.assertEqual(v2.content, apply_changes(v1.content, changes))

    def test_unknown_version(self):
        v1 = self.commit("A")
        with self.assertRaises(VersionNotFound):
            self.engine.generate_diff(PATH, v1.id, 'nope')

    def test_author_is_kept(self):
        self.assertEqual(ADA, self.commit("A").author)
