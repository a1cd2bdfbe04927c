from __future__ import annotations

import dataclasses
import datetime
import enum
import threading
from typing import List, Optional

from versioned_content.collaboration.channel import BroadcastChannel
from versioned_content.errors import (
    ConflictOnCommit,
    InvalidEdit,
    ParticipantNotFound,
    SessionClosed,
    VersioningError,
)
from versioned_content.models import (
    DeleteText,
    EditPayload,
    InsertText,
    RealTimeChange,
    VersionAuthor,
)
from versioned_content.utils.ids import new_id, utcnow


class SessionState(str, enum.Enum):
    OPEN = 'open'
    CLOSING = 'closing'
    CLOSED = 'closed'


class SessionEventKind(str, enum.Enum):
    JOINED = 'joined'
    LEFT = 'left'
    CHANGE = 'change'
    COMMITTED = 'committed'
    CONFLICT = 'conflict'
    CLOSED = 'closed'


@dataclasses.dataclass(frozen=True)
class SessionEvent:
    """ A message delivered to the subscribers of a session. """
    kind: SessionEventKind
    session_id: str
    author_id: Optional[str] = None
    change: Optional[RealTimeChange] = None
    version_id: Optional[str] = None
    error: Optional[ConflictOnCommit] = None


def apply_payload(content: str, payload: EditPayload) -> str:
    """Apply a character level edit to `content`.

    :raises InvalidEdit: If the edit does not fit in `content`.
    """
    if isinstance(payload, InsertText):
        if not 0 <= payload.position <= len(content):
            raise InvalidEdit(
                f"Cannot insert at position {payload.position} of a "
                f"{len(content)} character document."
            )
        if not payload.text:
            raise InvalidEdit("Cannot insert empty text.")
        return (
            content[:payload.position] + payload.text
            + content[payload.position:]
        )
    if isinstance(payload, DeleteText):
        end = payload.position + payload.length
        if payload.length <= 0 or payload.position < 0 or end > len(content):
            raise InvalidEdit(
                f"Cannot delete {payload.length} character(s) at position "
                f"{payload.position} of a {len(content)} character document."
            )
        return content[:payload.position] + content[end:]
    raise InvalidEdit(f"Unknown edit payload: {payload!r}")


class CollaborativeSession:
    """A live editing context shared by several authors.

    A session starts from the head of a branch and keeps a working copy of
    the content together with the ordered log of the edits applied to it.
    The coordinator that created a session is its only writer: every
    mutation happens while holding :attr:`lock`, which makes the session the
    single serialization point of its edits.

    :param content_path: The edited content path.
    :param branch_name: The branch the session commits to.
    :param initiator: The author that started the session.
    :param base_version_id: The head the session started from, ``None`` when
        the content path has no history yet.
    :param base_content: The content of the base version.
    """

    def __init__(self,
                 content_path: str,
                 branch_name: str,
                 initiator: VersionAuthor,
                 base_version_id: Optional[str],
                 base_content: str,
                 ) -> None:
        self.id = new_id()
        self.content_path = content_path
        self.branch_name = branch_name
        self.initiator = initiator
        self.base_version_id = base_version_id
        self.base_content = base_content
        self.content = base_content
        self.participants: List[VersionAuthor] = [initiator]
        self.change_log: List[RealTimeChange] = []
        self.state = SessionState.OPEN
        self.created_at = utcnow()
        self.last_activity = self.created_at
        self.committed_version_id: Optional[str] = None
        self.conflict: Optional[ConflictOnCommit] = None
        self.error: Optional[VersioningError] = None
        self.channel = BroadcastChannel()
        self.lock = threading.RLock()

    def __repr__(self) -> str:
        return (
            f"CollaborativeSession(id={self.id!r}, "
            f"content_path={self.content_path!r}, state={self.state.value}, "
            f"participants={len(self.participants)}, "
            f"changes={len(self.change_log)})"
        )

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    @property
    def has_pending_changes(self) -> bool:
        return bool(self.change_log) and self.content != self.base_content

    def touch(self, when: Optional[datetime.datetime] = None) -> None:
        self.last_activity = utcnow() if when is None else when

    def require_open(self) -> None:
        if self.state != SessionState.OPEN:
            raise SessionClosed(self.id, self.state.value)

    def participant(self, author_id: str) -> VersionAuthor:
        for author in self.participants:
            if author.id == author_id:
                return author
        raise ParticipantNotFound(self.id, author_id)

    def append(self, author_id: str, payload: EditPayload) -> RealTimeChange:
        """Apply an edit to the working copy and log it.

        The sequence number is the position of the edit in the log, starting
        at 1.
        """
        self.content = apply_payload(self.content, payload)
        change = RealTimeChange(
            session_id=self.id,
            author_id=author_id,
            sequence_number=len(self.change_log) + 1,
            payload=payload,
            appended_at=utcnow(),
        )
        self.change_log.append(change)
        self.touch(change.appended_at)
        return change
