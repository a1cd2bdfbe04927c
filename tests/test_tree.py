from tests.common import GRACE, PATH, _BaseTest
from versioned_content.errors import ContentNotFound


class TestVersionTree(_BaseTest):

    def setUp(self) -> None:
        super().setUp()
        self.v1 = self.commit("A\nB\nC")
        self.v2 = self.commit("A2\nB\nC", self.v1, message='Edit A')
        self.engine.create_branch(PATH, 'draft', '', self.v1.id, GRACE)
        self.v3 = self.commit("A\nB\nC2", self.v1, author=GRACE,
                              branch_name='draft')
        self.v4 = self.engine.merge_branch(PATH, 'draft', 'main') \
            .merged_version

    def test_structure(self):
        tree = self.engine.version_tree(PATH)

        self.assertEqual(4, tree.size())
        self.assertEqual(self.v1.id, tree.root)
        self.assertEqual(
            {self.v2.id, self.v3.id},
            {n.identifier for n in tree.children(self.v1.id)},
        )
        self.assertEqual(self.v2.id, tree.parent(self.v4.id).identifier)

    def test_node_data(self):
        tree = self.engine.version_tree(PATH)

        merge = tree[self.v4.id].data
        self.assertEqual(4, merge.number)
        self.assertEqual('main', merge.branch_name)
        self.assertEqual(self.v3.id, merge.merged_from)
        self.assertIsNone(tree[self.v3.id].data.merged_from)
        self.assertEqual('draft', tree[self.v3.id].data.branch_name)
        self.assertEqual(
            f"#2 [main] {self.v2.id[:8]} Edit A", tree[self.v2.id].tag
        )
        self.assertEqual(f"#1 [main] {self.v1.id[:8]}", tree[self.v1.id].tag)

    def test_unknown_content(self):
        with self.assertRaises(ContentNotFound):
            self.engine.version_tree('docs/missing.md')
