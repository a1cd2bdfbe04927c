from __future__ import annotations

import dataclasses
import logging
from collections import deque
from typing import Dict, Iterable, List, Optional

from versioned_content.config import EngineConfig
from versioned_content.diff import DiffEngine
from versioned_content.errors import (
    BranchNotFound,
    ContentNotFound,
    EmptyContent,
    InvalidBranch,
    ValidationError,
    VersionNotFound,
)
from versioned_content.models import (
    ChangeImpact,
    ContentMetadata,
    ContentVersion,
    LineRange,
    Modification,
    Publication,
    VersionAuthor,
    VersionChange,
    VersionHistory,
    VersionStatus,
    split_lines,
)
from versioned_content.store.base import VersionStore
from versioned_content.utils.ids import new_id, utcnow
from versioned_content.utils.retry import retrying

logger = logging.getLogger(__name__)


class VersionHistoryManager:
    """Owns the version graph of every content path.

    Writes follow a compare-and-swap discipline: a new version is accepted
    only if the caller's expected parent is still the head of the branch it
    is committed to. The swap itself is performed atomically by the
    :class:`~versioned_content.store.base.VersionStore`, so writers of the
    same content path are serialized there while writers of different content
    paths never contend. Reads work on immutable, committed versions and take
    no locks.

    Usage example:

    .. code-block:: python

        >>> manager = VersionHistoryManager(InMemoryVersionStore())
        >>> v1 = manager.create_version('docs/a.md', 'A\\nB\\nC', author)
        >>> v2 = manager.create_version(
        ...     'docs/a.md', 'A\\nB2\\nC', author,
        ...     expected_parent_version_id=v1.id,
        ... )
        >>> v2.parent_version_ids == (v1.id,)
        True

    :param store: The durable version store.
    :param config: The engine configuration.
    :param diff_engine: The engine used to describe changes that callers do
        not describe themselves.
    """

    def __init__(self,
                 store: VersionStore,
                 config: Optional[EngineConfig] = None,
                 diff_engine: Optional[DiffEngine] = None,
                 ) -> None:
        self._store = store
        self._config = config if config is not None else EngineConfig()
        self._diff = diff_engine if diff_engine is not None \
            else DiffEngine(store)

    @property
    def store(self) -> VersionStore:
        return self._store

    @property
    def trunk(self) -> str:
        return self._config.trunk_branch

    def create_version(
        self,
        content_path: str,
        content: str,
        author: VersionAuthor,
        changes: Optional[Iterable[VersionChange]] = None,
        expected_parent_version_id: Optional[str] = None,
        *,
        branch_name: Optional[str] = None,
        merge_parent_id: Optional[str] = None,
        message: str = '',
        rollback_of: Optional[str] = None,
    ) -> ContentVersion:
        """Create a new version of a content path.

        The new version is committed on `branch_name` (the trunk by default)
        and becomes its head. The first version of a content path creates the
        trunk branch.

        :raises EmptyContent: If `content` is empty.
        :raises StaleParentVersion: If `expected_parent_version_id` is not
            the current head of the branch. Callers should reload the head,
            reconcile and retry.
        :raises VersionNotFound: If a parent version does not exist.
        :raises BranchNotFound: If the branch does not exist.
        :param content_path: The content path to version.
        :param content: The full content of the new version.
        :param author: The author of the new version.
        :param changes: The description of the changes. Computed from the
            parent content when omitted.
        :param expected_parent_version_id: The head the caller built on;
            ``None`` only for the first version of a content path.
        :param branch_name: The branch to commit on.
        :param merge_parent_id: The second parent of a merge version.
        :param message: A short description of the version.
        :param rollback_of: The version whose content a rollback restores.
        :return: The committed version.
        """
        if not content:
            raise EmptyContent(content_path)

        branch_name = self.trunk if branch_name is None else branch_name
        has_history = self._store.has_history(content_path)

        if not has_history and branch_name != self.trunk:
            raise BranchNotFound(content_path, branch_name)
        if merge_parent_id is not None and expected_parent_version_id is None:
            raise ValidationError(
                "A merge version needs both an expected parent and a merge "
                "parent."
            )

        if has_history:
            branch = self._store.get_branch(content_path, branch_name)
            if branch is None:
                raise BranchNotFound(content_path, branch_name)
            branch_id = branch.id
        else:
            branch_id = new_id()

        parent_ids = [
            p for p in (expected_parent_version_id, merge_parent_id)
            if p is not None
        ]
        parents = [self._require_version(content_path, p) for p in parent_ids]

        if changes is None:
            base = parents[0].content if parents else ''
            changes = self._diff.diff(base, content)

        version = ContentVersion(
            id=new_id(),
            content_path=content_path,
            parent_version_ids=tuple(parent_ids),
            branch_id=branch_id,
            branch_name=branch_name,
            content=content,
            changes=tuple(changes),
            author=author,
            created_at=utcnow(),
            metadata=ContentMetadata.from_content(content),
            message=message,
            rollback_of=rollback_of,
        )
        stored = self._append(version, expected_parent_version_id)
        logger.info(
            "Created version %s (#%d) of %s on branch %s by %s",
            stored.id, stored.number, content_path, branch_name, author.id,
        )
        return stored

    @retrying
    def _append(
        self,
        version: ContentVersion,
        expected_head: Optional[str],
    ) -> ContentVersion:
        return self._store.append_version(version, expected_head)

    def publish_version(
        self,
        content_path: str,
        version_id: str,
        publisher: VersionAuthor,
    ) -> bool:
        """Mark a version as the published version of a content path.

        Only versions in the history of the trunk, i.e., reachable from the
        trunk head by following parent links, can be published.

        :raises VersionNotFound: If the version does not exist.
        :raises InvalidBranch: If the version is not part of the trunk.
        :return: ``True`` once the version is published.
        """
        version = self._require_version(content_path, version_id)
        trunk = self._store.get_branch(content_path, self.trunk)
        if trunk is None:
            raise BranchNotFound(content_path, self.trunk)
        reachable = self.ancestors(content_path, trunk.head_version_id)
        if version.id not in reachable:
            raise InvalidBranch(content_path, version_id, self.trunk)

        self._store.set_publication(content_path, Publication(
            version_id=version_id,
            publisher_id=publisher.id,
            published_at=utcnow(),
        ))
        logger.info(
            "Published version %s of %s by %s",
            version_id, content_path, publisher.id,
        )
        return True

    def rollback_to_version(
        self,
        content_path: str,
        version_id: str,
        author: VersionAuthor,
        *,
        branch_name: Optional[str] = None,
    ) -> ContentVersion:
        """Create a new version whose content is copied from an older one.

        History is never rewritten: the new version is parented on the
        current head of the branch and records a single full-content
        modification.

        :raises VersionNotFound: If the target version does not exist.
        :raises StaleParentVersion: If the branch head moved while the
            rollback was being prepared.
        """
        target = self._require_version(content_path, version_id)
        branch_name = self.trunk if branch_name is None else branch_name
        branch = self._store.get_branch(content_path, branch_name)
        if branch is None:
            raise BranchNotFound(content_path, branch_name)
        head = self._require_version(content_path, branch.head_version_id)

        change = Modification(
            section='full-content',
            line_range=LineRange(1, len(split_lines(head.content))),
            old_content=head.content,
            new_content=target.content,
            impact=ChangeImpact.MAJOR,
        )
        version = self.create_version(
            content_path,
            target.content,
            author,
            [change],
            head.id,
            branch_name=branch_name,
            message=f"Rollback to version {target.number}",
            rollback_of=target.id,
        )
        logger.info(
            "Rolled back %s on %s to version %s",
            content_path, branch_name, version_id,
        )
        return version

    def get_version_history(self, content_path: str) -> VersionHistory:
        """Return a read-only snapshot of the history of a content path.

        :raises ContentNotFound: If the content path has no versions.
        """
        versions = self._store.list_versions(content_path)
        if not versions:
            raise ContentNotFound(content_path)
        publication = self._store.get_publication(content_path)
        versions = [self._with_status(v, publication) for v in versions]
        published = None
        if publication is not None:
            published = next(
                (v for v in versions if v.id == publication.version_id), None
            )
        branches = {
            b.name: b.head_version_id
            for b in self._store.list_branches(content_path)
        }
        return VersionHistory(
            content_path=content_path,
            trunk=self.trunk,
            latest_version=versions[-1],
            published_version=published,
            branches=branches,
            versions=tuple(versions),
        )

    def get_version(self, content_path: str, version_id: str) -> ContentVersion:
        version = self._require_version(content_path, version_id)
        return self._with_status(
            version, self._store.get_publication(content_path)
        )

    def get_latest_version(self, content_path: str) -> ContentVersion:
        return self.get_version_history(content_path).latest_version

    def get_published_version(
        self, content_path: str
    ) -> Optional[ContentVersion]:
        publication = self._store.get_publication(content_path)
        if publication is None:
            return None
        return self.get_version(content_path, publication.version_id)

    def get_log(
        self, content_path: str, branch_name: Optional[str] = None
    ) -> List[ContentVersion]:
        """Return the first-parent chain of a branch, newest first.

        :raises BranchNotFound: If the branch does not exist.
        """
        branch_name = self.trunk if branch_name is None else branch_name
        branch = self._store.get_branch(content_path, branch_name)
        if branch is None:
            if not self._store.has_history(content_path):
                raise ContentNotFound(content_path)
            raise BranchNotFound(content_path, branch_name)
        publication = self._store.get_publication(content_path)

        log = []
        version_id: Optional[str] = branch.head_version_id
        while version_id is not None:
            version = self._require_version(content_path, version_id)
            log.append(self._with_status(version, publication))
            version_id = version.first_parent_id
        return log

    def ancestors(
        self, content_path: str, version_id: str
    ) -> Dict[str, int]:
        """Return every version reachable from `version_id`, itself included.

        :return: A mapping from version id to its distance, in parent links,
            from `version_id`.
        """
        distances = {version_id: 0}
        to_visit = deque([version_id])
        while to_visit:
            current = self._require_version(content_path, to_visit.popleft())
            for parent_id in current.parent_version_ids:
                if parent_id not in distances:
                    distances[parent_id] = distances[current.id] + 1
                    to_visit.append(parent_id)
        return distances

    def _require_version(
        self, content_path: str, version_id: str
    ) -> ContentVersion:
        version = self._store.get_version(content_path, version_id)
        if version is None:
            if not self._store.has_history(content_path):
                raise ContentNotFound(content_path)
            raise VersionNotFound(content_path, version_id)
        return version

    @staticmethod
    def _with_status(
        version: ContentVersion, publication: Optional[Publication]
    ) -> ContentVersion:
        if publication is not None and publication.version_id == version.id:
            return dataclasses.replace(version, status=VersionStatus.PUBLISHED)
        return version

