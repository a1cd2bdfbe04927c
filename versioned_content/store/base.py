import abc
from typing import List, Optional

from versioned_content.models import (
    Branch,
    BranchStatus,
    ContentVersion,
    Publication,
)


class VersionStore(abc.ABC):
    """Durable, append-only persistence of versions and branch pointers.

    Per content path a store keeps one append-only log of versions keyed by
    version id, one table of branch pointers and one optional published
    pointer.

    Implementations must guarantee that :meth:`append_version` appends the
    version and moves the branch head as a single atomic compare-and-swap: the
    append succeeds only if the branch head still equals the head the caller
    expected, and a failed call leaves the content path exactly as it was.
    Reads never observe a partially written version.

    Storage failures are reported as
    :class:`~versioned_content.errors.StorageError`; those worth retrying as
    :class:`~versioned_content.errors.TransientStorageError`.
    """

    @abc.abstractmethod
    def append_version(
        self,
        version: ContentVersion,
        expected_head: Optional[str],
    ) -> ContentVersion:
        """Append a version and advance its branch head to it.

        The branch is identified by ``version.branch_name``. When the content
        path has no history yet, ``expected_head`` must be ``None`` and the
        branch is created with the new version as both base and head.

        :raises StaleParentVersion: If the branch head differs from
            ``expected_head``.
        :raises BranchNotFound: If the content path has history but no branch
            named ``version.branch_name``.
        :return: The stored version, with its sequence number assigned.
        """

    @abc.abstractmethod
    def get_version(
        self, content_path: str, version_id: str
    ) -> Optional[ContentVersion]:
        """Return the version, or ``None`` if it does not exist."""

    @abc.abstractmethod
    def list_versions(self, content_path: str) -> List[ContentVersion]:
        """Return all versions of a content path ordered by number."""

    @abc.abstractmethod
    def has_history(self, content_path: str) -> bool:
        """Check whether at least one version exists for the content path."""

    @abc.abstractmethod
    def content_paths(self) -> List[str]:
        """Return all content paths that have history."""

    @abc.abstractmethod
    def get_branch(self, content_path: str, name: str) -> Optional[Branch]:
        """Return the branch with the given name, or ``None``."""

    @abc.abstractmethod
    def list_branches(self, content_path: str) -> List[Branch]:
        """Return the branches of a content path ordered by creation."""

    @abc.abstractmethod
    def create_branch(self, branch: Branch) -> Branch:
        """Create a new branch pointer.

        :raises DuplicateBranchName: If the name is already used for the
            branch's content path.
        """

    @abc.abstractmethod
    def set_branch_status(
        self, content_path: str, name: str, status: BranchStatus
    ) -> Branch:
        """Update the status of a branch and return the updated branch."""

    @abc.abstractmethod
    def get_publication(self, content_path: str) -> Optional[Publication]:
        """Return the published pointer of a content path, if any."""

    @abc.abstractmethod
    def set_publication(
        self, content_path: str, publication: Publication
    ) -> None:
        """Move the published pointer of a content path."""
