from __future__ import annotations

import datetime
import logging
from typing import Iterable, List, Optional, Union

from treelib import Tree

from versioned_content.analytics import (
    PlatformAnalytics,
    VersioningAnalytics,
    get_versioning_analytics,
)
from versioned_content.branches import BranchManager, WorkingContext
from versioned_content.collaboration import (
    CollaborationCoordinator,
    CollaborativeSession,
    IdleSessionReaper,
    Subscription,
)
from versioned_content.config import EngineConfig
from versioned_content.diff import DiffEngine
from versioned_content.history import VersionHistoryManager
from versioned_content.models import (
    Branch,
    ContentVersion,
    EditPayload,
    MergeResult,
    RealTimeChange,
    VersionAuthor,
    VersionChange,
    VersionDiff,
    VersionHistory,
)
from versioned_content.store.base import VersionStore
from versioned_content.store.memory import InMemoryVersionStore
from versioned_content.tree import version_tree

logger = logging.getLogger(__name__)


class ContentVersioningEngine:
    """ The entry point of the versioning engine.

    Wires a :class:`~versioned_content.store.base.VersionStore` to the
    history, diff, branch and collaboration components and exposes all their
    operations from a single object.

    Usage example:

    .. code-block:: python

        from versioned_content import ContentVersioningEngine, VersionAuthor

        engine = ContentVersioningEngine()
        author = VersionAuthor(id='u1', name='Ada')

        v1 = engine.create_version('docs/a.md', 'A\\nB\\nC', author)
        v2 = engine.create_version(
            'docs/a.md', 'A\\nB2\\nC', author,
            expected_parent_version_id=v1.id,
        )
        engine.generate_diff('docs/a.md', v1.id, v2.id).stats

    :param store: The version store, an in-memory one by default.
    :param config: The engine configuration.
    :param start_reaper: Whether to start the idle session reaper.
    """

    def __init__(self,
                 store: Optional[VersionStore] = None,
                 config: Optional[EngineConfig] = None,
                 start_reaper: bool = False,
                 ) -> None:
        self._config = config if config is not None else EngineConfig()
        self._store = store if store is not None else InMemoryVersionStore()
        self._diff = DiffEngine(self._store)
        self._history = VersionHistoryManager(
            self._store, self._config, self._diff
        )
        self._branches = BranchManager(self._history, self._diff)
        self._coordinator = CollaborationCoordinator(
            self._history, self._config, self._diff
        )
        self._reaper = IdleSessionReaper(
            self._coordinator, self._config.reaper_interval
        )
        if start_reaper:
            self._reaper.start()

    def __enter__(self) -> ContentVersioningEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """ Stops the idle session reaper, if running. """
        self._reaper.stop()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> VersionStore:
        return self._store

    @property
    def history(self) -> VersionHistoryManager:
        return self._history

    @property
    def branches(self) -> BranchManager:
        return self._branches

    @property
    def coordinator(self) -> CollaborationCoordinator:
        return self._coordinator

    @property
    def reaper(self) -> IdleSessionReaper:
        return self._reaper

    # History

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
    ) -> ContentVersion:
        return self._history.create_version(
            content_path,
            content,
            author,
            changes,
            expected_parent_version_id,
            branch_name=branch_name,
            merge_parent_id=merge_parent_id,
            message=message,
        )

    def publish_version(
        self, content_path: str, version_id: str, publisher: VersionAuthor
    ) -> bool:
        return self._history.publish_version(
            content_path, version_id, publisher
        )

    def rollback_to_version(
        self,
        content_path: str,
        version_id: str,
        author: VersionAuthor,
        *,
        branch_name: Optional[str] = None,
    ) -> ContentVersion:
        return self._history.rollback_to_version(
            content_path, version_id, author, branch_name=branch_name
        )

    def get_version_history(self, content_path: str) -> VersionHistory:
        return self._history.get_version_history(content_path)

    def get_version(self, content_path: str, version_id: str) -> ContentVersion:
        return self._history.get_version(content_path, version_id)

    def get_latest_version(self, content_path: str) -> ContentVersion:
        return self._history.get_latest_version(content_path)

    def get_published_version(
        self, content_path: str
    ) -> Optional[ContentVersion]:
        return self._history.get_published_version(content_path)

    def get_log(
        self, content_path: str, branch_name: Optional[str] = None
    ) -> List[ContentVersion]:
        return self._history.get_log(content_path, branch_name)

    def version_tree(self, content_path: str) -> Tree:
        return version_tree(self._history, content_path)

    # Diff

    def diff(self, from_content: str, to_content: str) -> List[VersionChange]:
        return self._diff.diff(from_content, to_content)

    def generate_diff(
        self, content_path: str, from_version_id: str, to_version_id: str
    ) -> VersionDiff:
        return self._diff.generate_diff(
            content_path, from_version_id, to_version_id
        )

    # Branches

    def create_branch(
        self,
        content_path: str,
        name: str,
        description: str,
        base_version_id: str,
        author: VersionAuthor,
    ) -> Branch:
        return self._branches.create_branch(
            content_path, name, description, base_version_id, author
        )

    def get_branch(self, content_path: str, branch: str) -> Branch:
        return self._branches.get_branch(content_path, branch)

    def list_branches(self, content_path: str) -> List[Branch]:
        return self._branches.list_branches(content_path)

    def switch_branch(
        self, content_path: str, branch: str
    ) -> WorkingContext:
        return self._branches.switch_branch(content_path, branch)

    def merge_branch(
        self,
        content_path: str,
        source_branch: str,
        target_branch: str,
        author: Optional[VersionAuthor] = None,
        message: Optional[str] = None,
    ) -> MergeResult:
        return self._branches.merge_branch(
            content_path, source_branch, target_branch, author, message
        )

    # Collaboration

    def start_collaborative_session(
        self,
        content_path: str,
        initiator: VersionAuthor,
        branch_name: Optional[str] = None,
    ) -> CollaborativeSession:
        return self._coordinator.start_collaborative_session(
            content_path, initiator, branch_name
        )

    def join_collaborative_session(
        self, session_id: str, author: VersionAuthor
    ) -> CollaborativeSession:
        return self._coordinator.join_collaborative_session(session_id, author)

    def leave_collaborative_session(
        self, session_id: str, author_id: str
    ) -> CollaborativeSession:
        return self._coordinator.leave_collaborative_session(
            session_id, author_id
        )

    def end_collaborative_session(
        self, session_id: str, author: Optional[VersionAuthor] = None
    ) -> CollaborativeSession:
        return self._coordinator.end_collaborative_session(session_id, author)

    def apply_edit(
        self, session_id: str, author_id: str, payload: EditPayload
    ) -> RealTimeChange:
        return self._coordinator.apply_edit(session_id, author_id, payload)

    def subscribe(self, session_id: str, author_id: str) -> Subscription:
        return self._coordinator.subscribe(session_id, author_id)

    def unsubscribe(self, session_id: str, author_id: str) -> bool:
        return self._coordinator.unsubscribe(session_id, author_id)

    def get_session(self, session_id: str) -> CollaborativeSession:
        return self._coordinator.get_session(session_id)

    def get_open_session(
        self, content_path: str
    ) -> Optional[CollaborativeSession]:
        return self._coordinator.get_open_session(content_path)

    def close_idle_sessions(
        self, now: Optional[datetime.datetime] = None
    ) -> List[CollaborativeSession]:
        return self._coordinator.close_idle_sessions(now)

    # Analytics

    def get_versioning_analytics(
        self,
        content_path: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> Union[VersioningAnalytics, PlatformAnalytics]:
        return get_versioning_analytics(self._history, content_path, now)
