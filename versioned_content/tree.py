"""Tree rendering of a version graph.

A version graph is a DAG, while ``treelib`` trees only hold one parent per
node. The version tree keeps the first parent of each version as its tree
parent; the second parent of a merge version is kept in the node data.
"""
import dataclasses
from typing import Iterable, Optional

from treelib import Tree

from versioned_content.errors import ContentNotFound
from versioned_content.history import VersionHistoryManager
from versioned_content.models import ContentVersion


@dataclasses.dataclass(frozen=True)
class VersionNode:
    number: int
    branch_name: str
    author_id: str
    message: str
    merged_from: Optional[str] = None


def _tag(version: ContentVersion) -> str:
    tag = f"#{version.number} [{version.branch_name}] {version.id[:8]}"
    if version.message:
        tag += f" {version.message}"
    return tag


def build_version_tree(versions: Iterable[ContentVersion]) -> Tree:
    """Build the version tree of the versions of one content path.

    Parents are always numbered before their children, so the versions are
    inserted in number order.
    """
    tree = Tree()
    for version in sorted(versions, key=lambda v: v.number):
        merged_from = None
        if version.is_merge:
            merged_from = version.parent_version_ids[1]
        tree.create_node(
            tag=_tag(version),
            identifier=version.id,
            parent=version.first_parent_id,
            data=VersionNode(
                number=version.number,
                branch_name=version.branch_name,
                author_id=version.author.id,
                message=version.message,
                merged_from=merged_from,
            ),
        )
    return tree


def version_tree(history: VersionHistoryManager, content_path: str) -> Tree:
    """Return the version tree of `content_path`.

    :raises ContentNotFound: If the content path has no versions.
    """
    versions = history.store.list_versions(content_path)
    if not versions:
        raise ContentNotFound(content_path)
    return build_version_tree(versions)
