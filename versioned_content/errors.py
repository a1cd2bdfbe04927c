""" Custom errors used in `versioned_content` """
from typing import Any, List, Optional


class VersioningError(Exception):
    """ Base class of every error raised by the versioning engine. """
    pass


class ValidationError(VersioningError):
    """ Raised when the input of an operation is malformed. """
    pass


class NotFoundError(VersioningError):
    """ Raised when a content path, version, branch or session is unknown. """
    pass


class ConflictError(VersioningError):
    """ Raised when a write competes with another writer. """
    pass


class StateError(VersioningError):
    """ Raised when an operation is not allowed in the current state. """
    pass


class StorageError(VersioningError):
    """ Raised when the durable store fails to complete an operation. """
    pass


class TransientStorageError(StorageError):
    """ A storage failure that may succeed when retried. """
    pass


class EmptyContent(ValidationError):
    """ Raised when a version is created with empty content. """

    def __init__(self, content_path: str) -> None:
        self.content_path = content_path
        super().__init__(
            f"Cannot create a version of '{content_path}' with empty content."
        )


class InvalidBranchName(ValidationError):

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"Invalid branch name '{name}': {reason}")


class DuplicateBranchName(ValidationError):
    """ Raised when a branch name is already used for a content path. """

    def __init__(self, content_path: str, name: str) -> None:
        self.content_path = content_path
        self.name = name
        super().__init__(
            f"Branch '{name}' already exists for '{content_path}'."
        )


class InvalidBranch(ValidationError):
    """ Raised when a version does not belong to the required branch. """

    __DEFAULT_MESSAGE = (
        "Version '{}' of '{}' is not part of the history of branch '{}'."
    )

    def __init__(self,
                 content_path: str,
                 version_id: str,
                 branch: str,
                 message: str = __DEFAULT_MESSAGE
                 ) -> None:
        self.content_path = content_path
        self.version_id = version_id
        self.branch = branch
        super().__init__(message.format(version_id, content_path, branch))


class InvalidEdit(ValidationError):
    """ Raised when a real-time edit does not fit the working copy. """
    pass


class ContentNotFound(NotFoundError):

    def __init__(self, content_path: str) -> None:
        self.content_path = content_path
        super().__init__(f"No version history exists for '{content_path}'.")


class VersionNotFound(NotFoundError):
    """ Raised when a version id is not registered for a content path. """

    __DEFAULT_MESSAGE = (
        "The version '{}' does not exist in the history of '{}'."
    )

    def __init__(self,
                 content_path: str,
                 version_id: str,
                 message: str = __DEFAULT_MESSAGE
                 ) -> None:
        self.content_path = content_path
        self.version_id = version_id
        super().__init__(message.format(version_id, content_path))


class BranchNotFound(NotFoundError):
    """ Raised when a branch could not be found  """

    def __init__(self, content_path: str, branch: str) -> None:
        self.content_path = content_path
        self.branch = branch
        super().__init__(
            f"Branch '{branch}' does not exist for '{content_path}'!"
        )


class SessionNotFound(NotFoundError):

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Collaborative session '{session_id}' not found.")


class ParticipantNotFound(NotFoundError):

    def __init__(self, session_id: str, author_id: str) -> None:
        self.session_id = session_id
        self.author_id = author_id
        super().__init__(
            f"Author '{author_id}' is not a participant of session "
            f"'{session_id}'."
        )


class StaleParentVersion(ConflictError):
    """ Raised when a commit does not build on the current branch head.

    Carries both the parent the caller expected and the head found in the
    store, so the caller can rebase and retry.
    """

    def __init__(self,
                 content_path: str,
                 branch: str,
                 expected: Optional[str],
                 actual: Optional[str]
                 ) -> None:
        self.content_path = content_path
        self.branch = branch
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale parent version for '{content_path}' on branch '{branch}': "
            f"expected head '{expected}', but the current head is '{actual}'."
        )


class MergeConflictError(ConflictError):
    """ Raised when automatically merging two branches produces conflicts. """

    def __init__(self, conflict: Any) -> None:
        self.conflict = conflict
        super().__init__(
            f"Automatic merge of branch '{conflict.source_branch}' into "
            f"'{conflict.target_branch}' failed with "
            f"{len(conflict.conflicts)} conflicting change(s). "
            f"No version was created."
        )


class ConflictOnCommit(ConflictError):
    """ Raised when a collaborative session cannot commit its changes.

    The accumulated change log and the working copy are preserved on the
    error so that nothing edited during the session is lost.
    """

    def __init__(self,
                 session_id: str,
                 content_path: str,
                 expected: Optional[str],
                 actual: Optional[str],
                 pending_content: str,
                 pending_changes: List[Any]
                 ) -> None:
        self.session_id = session_id
        self.content_path = content_path
        self.expected = expected
        self.actual = actual
        self.pending_content = pending_content
        self.pending_changes = pending_changes
        super().__init__(
            f"Session '{session_id}' could not commit to '{content_path}': "
            f"the session started from '{expected}' but the head moved to "
            f"'{actual}'. {len(pending_changes)} change(s) are pending."
        )


class SessionAlreadyOpen(StateError):

    def __init__(self, content_path: str, session_id: str) -> None:
        self.content_path = content_path
        self.session_id = session_id
        super().__init__(
            f"A collaborative session ('{session_id}') is already open for "
            f"'{content_path}'."
        )


class SessionClosed(StateError):

    def __init__(self, session_id: str, state: str) -> None:
        self.session_id = session_id
        self.state = state
        super().__init__(
            f"Collaborative session '{session_id}' is {state}."
        )
