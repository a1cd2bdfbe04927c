from __future__ import annotations

import dataclasses
import logging
from typing import List, Optional, Tuple

from versioned_content.diff import DiffEngine, apply_changes
from versioned_content.errors import (
    BranchNotFound,
    InvalidBranchName,
    ValidationError,
)
from versioned_content.history import VersionHistoryManager
from versioned_content.models import (
    Branch,
    BranchStatus,
    ConflictingChanges,
    MergeConflict,
    MergeResult,
    VersionAuthor,
    VersionChange,
)
from versioned_content.utils.ids import new_id, utcnow

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class WorkingContext:
    """ The branch a caller is currently working on.

    Switching branches only produces a new context; it never touches the
    shared history.
    """
    content_path: str
    branch_name: str
    head_version_id: str


class BranchManager:
    """Creates branches and merges them with a three-way, line based merge.

    :param history: The manager owning the version graphs.
    :param diff_engine: The engine used to compute the changes of both sides
        of a merge.
    """

    def __init__(self,
                 history: VersionHistoryManager,
                 diff_engine: Optional[DiffEngine] = None,
                 ) -> None:
        self._history = history
        self._store = history.store
        self._diff = diff_engine if diff_engine is not None \
            else DiffEngine(self._store)

    def create_branch(
        self,
        content_path: str,
        name: str,
        description: str,
        base_version_id: str,
        author: VersionAuthor,
    ) -> Branch:
        """Create a branch whose head is `base_version_id`.

        :raises InvalidBranchName: If `name` is empty or starts with ``__``.
        :raises DuplicateBranchName: If a branch with the same name exists.
        :raises VersionNotFound: If the base version does not exist.
        """
        if not name or not name.strip():
            raise InvalidBranchName(name, "branch names cannot be empty")
        if name.startswith('__'):
            raise InvalidBranchName(name, "branch names cannot start with '__'")

        base = self._history.get_version(content_path, base_version_id)
        now = utcnow()
        branch = self._store.create_branch(Branch(
            id=new_id(),
            content_path=content_path,
            name=name,
            description=description,
            base_version_id=base.id,
            head_version_id=base.id,
            author_id=author.id,
            created_at=now,
            updated_at=now,
        ))
        logger.info(
            "Created branch %s of %s at version %s",
            name, content_path, base.id,
        )
        return branch

    def get_branch(self, content_path: str, branch: str) -> Branch:
        """Look a branch up by name, then by id.

        :raises BranchNotFound: If no branch matches.
        """
        found = self._store.get_branch(content_path, branch)
        if found is not None:
            return found
        for candidate in self._store.list_branches(content_path):
            if candidate.id == branch:
                return candidate
        raise BranchNotFound(content_path, branch)

    def list_branches(self, content_path: str) -> List[Branch]:
        return self._store.list_branches(content_path)

    def switch_branch(
        self, content_path: str, branch: str
    ) -> WorkingContext:
        """Return a working context pointing at the head of `branch`."""
        found = self.get_branch(content_path, branch)
        return WorkingContext(
            content_path=content_path,
            branch_name=found.name,
            head_version_id=found.head_version_id,
        )

    def common_ancestor(
        self, content_path: str, first_id: str, second_id: str
    ) -> str:
        """Find the nearest version reachable from both versions.

        "Nearest" minimises the sum of the distances to both versions; ties
        go to the most recently created candidate.
        """
        first = self._history.ancestors(content_path, first_id)
        second = self._history.ancestors(content_path, second_id)
        common = set(first) & set(second)
        if not common:
            raise ValidationError(
                f"Versions '{first_id}' and '{second_id}' of '{content_path}' "
                f"share no history."
            )

        def rank(version_id: str) -> Tuple[int, int]:
            version = self._history.get_version(content_path, version_id)
            return first[version_id] + second[version_id], -version.number

        return min(sorted(common), key=rank)

    @staticmethod
    def _find_conflicts(
        source_changes: List[VersionChange],
        target_changes: List[VersionChange],
    ) -> List[ConflictingChanges]:
        conflicts = []
        for s in source_changes:
            for t in target_changes:
                if s == t:
                    continue
                if s.line_range.overlaps(t.line_range):
                    conflicts.append(ConflictingChanges(source=s, target=t))
        return conflicts

    def merge_branch(
        self,
        content_path: str,
        source_branch: str,
        target_branch: str,
        author: Optional[VersionAuthor] = None,
        message: Optional[str] = None,
    ) -> MergeResult:
        """Merge `source_branch` into `target_branch`.

        Both heads are diffed against their common ancestor. If the changed
        line ranges are disjoint, both change sets are applied to the
        ancestor and the result is committed on the target branch as a
        version with the parents ``[target head, source head]``. Otherwise
        the colliding changes are returned as a
        :class:`~versioned_content.models.MergeConflict` and history is left
        untouched.

        .. note::
            The merge never fast-forwards: even when the target head is the
            common ancestor, a merge version with two parents is created.

        :raises StaleParentVersion: If the target head moves while merging.
        :param content_path: The content path.
        :param source_branch: Name or id of the branch to merge.
        :param target_branch: Name or id of the branch to merge into.
        :param author: The author of the merge version. Defaults to the
            author of the source head.
        :param message: The message of the merge version.
        :return: The merge result.
        """
        source = self.get_branch(content_path, source_branch)
        target = self.get_branch(content_path, target_branch)
        if source.id == target.id:
            raise ValidationError("Cannot merge a branch into itself.")

        source_head = self._history.get_version(
            content_path, source.head_version_id
        )
        target_head = self._history.get_version(
            content_path, target.head_version_id
        )

        if source_head.id in self._history.ancestors(
            content_path, target_head.id
        ):
            logger.info(
                "Branch %s is already merged into %s", source.name, target.name
            )
            return MergeResult(branch=target, up_to_date=True)

        ancestor = self._history.get_version(
            content_path,
            self.common_ancestor(content_path, target_head.id, source_head.id),
        )
        source_changes = self._diff.diff(ancestor.content, source_head.content)
        target_changes = self._diff.diff(ancestor.content, target_head.content)

        conflicts = self._find_conflicts(source_changes, target_changes)
        if conflicts:
            logger.warning(
                "Merging %s into %s of %s produced %d conflict(s)",
                source.name, target.name, content_path, len(conflicts),
            )
            return MergeResult(
                branch=target,
                conflict=MergeConflict(
                    content_path=content_path,
                    source_branch=source.name,
                    target_branch=target.name,
                    ancestor_version_id=ancestor.id,
                    source_head_id=source_head.id,
                    target_head_id=target_head.id,
                    conflicts=tuple(conflicts),
                ),
            )

        combined = list(target_changes)
        combined.extend(c for c in source_changes if c not in target_changes)
        merged_content = apply_changes(ancestor.content, combined)

        merged = self._history.create_version(
            content_path,
            merged_content,
            author if author is not None else source_head.author,
            self._diff.diff(target_head.content, merged_content),
            target_head.id,
            branch_name=target.name,
            merge_parent_id=source_head.id,
            message=(
                message if message is not None
                else f"Merge branch '{source.name}' into '{target.name}'"
            ),
        )
        if source.name != self._history.trunk:
            self._store.set_branch_status(
                content_path, source.name, BranchStatus.MERGED
            )
        logger.info(
            "Merged %s into %s of %s as version %s",
            source.name, target.name, content_path, merged.id,
        )
        return MergeResult(
            merged_version=merged,
            branch=self._store.get_branch(content_path, target.name),
        )
