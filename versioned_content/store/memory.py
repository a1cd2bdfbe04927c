import dataclasses
import threading
from typing import Dict, List, Optional

from versioned_content.errors import (
    BranchNotFound,
    DuplicateBranchName,
    StaleParentVersion,
)
from versioned_content.models import (
    Branch,
    BranchStatus,
    ContentVersion,
    Publication,
)
from versioned_content.store.base import VersionStore


class _ContentPathState:
    """The versions, branch pointers and published pointer of one path.

    Writers serialize on ``lock``, which is scoped to this content path only.
    Readers do not take the lock: they only ever read immutable records, and
    the containers are replaced or appended to atomically.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.versions: Dict[str, ContentVersion] = {}
        self.order: List[str] = []
        self.branches: Dict[str, Branch] = {}
        self.publication: Optional[Publication] = None


class InMemoryVersionStore(VersionStore):
    """A process local :class:`VersionStore`.

    Nothing survives the process. Useful for tests and for embedding the
    engine in short-lived tools.
    """

    def __init__(self) -> None:
        # Guards the creation of per-path states only, never their content.
        self._registry_lock = threading.Lock()
        self._paths: Dict[str, _ContentPathState] = {}

    def _state(self, content_path: str) -> _ContentPathState:
        state = self._paths.get(content_path)
        if state is None:
            with self._registry_lock:
                state = self._paths.setdefault(
                    content_path, _ContentPathState()
                )
        return state

    def append_version(
        self,
        version: ContentVersion,
        expected_head: Optional[str],
    ) -> ContentVersion:
        state = self._state(version.content_path)
        with state.lock:
            branch = state.branches.get(version.branch_name)
            if not state.order:
                if expected_head is not None:
                    raise StaleParentVersion(
                        version.content_path, version.branch_name,
                        expected=expected_head, actual=None,
                    )
                branch = Branch(
                    id=version.branch_id,
                    content_path=version.content_path,
                    name=version.branch_name,
                    description='Trunk',
                    base_version_id=version.id,
                    head_version_id=version.id,
                    author_id=version.author.id,
                    created_at=version.created_at,
                    updated_at=version.created_at,
                )
            else:
                if branch is None:
                    raise BranchNotFound(
                        version.content_path, version.branch_name
                    )
                if branch.head_version_id != expected_head:
                    raise StaleParentVersion(
                        version.content_path, version.branch_name,
                        expected=expected_head,
                        actual=branch.head_version_id,
                    )
                branch = dataclasses.replace(
                    branch,
                    head_version_id=version.id,
                    updated_at=version.created_at,
                )

            stored = dataclasses.replace(version, number=len(state.order) + 1)
            state.versions[stored.id] = stored
            state.order.append(stored.id)
            state.branches[branch.name] = branch
            return stored

    def get_version(
        self, content_path: str, version_id: str
    ) -> Optional[ContentVersion]:
        state = self._paths.get(content_path)
        if state is None:
            return None
        return state.versions.get(version_id)

    def list_versions(self, content_path: str) -> List[ContentVersion]:
        state = self._paths.get(content_path)
        if state is None:
            return []
        order = list(state.order)
        return [state.versions[v_id] for v_id in order]

    def has_history(self, content_path: str) -> bool:
        state = self._paths.get(content_path)
        return state is not None and len(state.order) > 0

    def content_paths(self) -> List[str]:
        return sorted(p for p, s in list(self._paths.items()) if s.order)

    def get_branch(self, content_path: str, name: str) -> Optional[Branch]:
        state = self._paths.get(content_path)
        if state is None:
            return None
        return state.branches.get(name)

    def list_branches(self, content_path: str) -> List[Branch]:
        state = self._paths.get(content_path)
        if state is None:
            return []
        return sorted(state.branches.values(), key=lambda b: b.created_at)

    def create_branch(self, branch: Branch) -> Branch:
        state = self._state(branch.content_path)
        with state.lock:
            if branch.name in state.branches:
                raise DuplicateBranchName(branch.content_path, branch.name)
            state.branches[branch.name] = branch
        return branch

    def set_branch_status(
        self, content_path: str, name: str, status: BranchStatus
    ) -> Branch:
        state = self._state(content_path)
        with state.lock:
            branch = state.branches.get(name)
            if branch is None:
                raise BranchNotFound(content_path, name)
            branch = dataclasses.replace(branch, status=status)
            state.branches[name] = branch
        return branch

    def get_publication(self, content_path: str) -> Optional[Publication]:
        state = self._paths.get(content_path)
        if state is None:
            return None
        return state.publication

    def set_publication(
        self, content_path: str, publication: Publication
    ) -> None:
        state = self._state(content_path)
        with state.lock:
            state.publication = publication
