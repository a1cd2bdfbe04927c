from __future__ import annotations

import datetime
import logging
import threading
import warnings
from collections import OrderedDict
from typing import Dict, List, Optional

from versioned_content.collaboration.channel import Subscription
from versioned_content.collaboration.session import (
    CollaborativeSession,
    SessionEvent,
    SessionEventKind,
    SessionState,
)
from versioned_content.config import EngineConfig
from versioned_content.diff import DiffEngine
from versioned_content.errors import (
    BranchNotFound,
    ConflictOnCommit,
    SessionAlreadyOpen,
    SessionNotFound,
    StaleParentVersion,
    VersioningError,
)
from versioned_content.history import VersionHistoryManager
from versioned_content.models import (
    EditPayload,
    RealTimeChange,
    VersionAuthor,
)
from versioned_content.utils.ids import as_utc, utcnow

logger = logging.getLogger(__name__)


class CollaborationCoordinator:
    """Runs the collaborative editing sessions of a process.

    Each session owns the ordered log of the edits made while it is open.
    The coordinator serializes the edits of a session under the lock of that
    session only, so sessions of different content paths never wait on each
    other. When a session ends, either explicitly, when its last participant
    leaves or when it has been idle for too long, its working copy is
    committed as a single version on top of the version it started from.

    Session state lives in memory only; edits that were not committed are
    lost when the process stops. Closed sessions are released, except for the
    most recent ones (``closed_sessions_kept`` of the configuration), which
    stay available to :meth:`get_session`.

    :param history: The manager the sessions commit through.
    :param config: The engine configuration.
    :param diff_engine: The engine used to describe committed changes.
    """

    def __init__(self,
                 history: VersionHistoryManager,
                 config: Optional[EngineConfig] = None,
                 diff_engine: Optional[DiffEngine] = None,
                 ) -> None:
        self._history = history
        self._config = config if config is not None else EngineConfig()
        self._diff = diff_engine if diff_engine is not None \
            else DiffEngine(history.store)
        # Guards the three registries below, never a session
        self._lock = threading.Lock()
        self._sessions: Dict[str, CollaborativeSession] = {}
        self._open_by_path: Dict[str, str] = {}
        self._closed: OrderedDict[str, CollaborativeSession] = OrderedDict()

    @property
    def idle_timeout(self) -> float:
        return self._config.idle_timeout

    def start_collaborative_session(
        self,
        content_path: str,
        initiator: VersionAuthor,
        branch_name: Optional[str] = None,
    ) -> CollaborativeSession:
        """Open a session on the head of `branch_name` (the trunk by default).

        :raises SessionAlreadyOpen: If a session is open for `content_path`.
        :raises BranchNotFound: If the branch does not exist.
        """
        branch_name = self._history.trunk if branch_name is None \
            else branch_name
        with self._lock:
            open_id = self._open_by_path.get(content_path)
        if open_id is not None:
            raise SessionAlreadyOpen(content_path, open_id)

        branch = self._history.store.get_branch(content_path, branch_name)
        if branch is not None:
            base = self._history.get_version(
                content_path, branch.head_version_id
            )
            base_id, base_content = base.id, base.content
        elif (
            branch_name == self._history.trunk
            and not self._history.store.has_history(content_path)
        ):
            base_id, base_content = None, ''
        else:
            raise BranchNotFound(content_path, branch_name)

        session = CollaborativeSession(
            content_path, branch_name, initiator, base_id, base_content
        )
        with self._lock:
            open_id = self._open_by_path.get(content_path)
            if open_id is not None:
                raise SessionAlreadyOpen(content_path, open_id)
            self._sessions[session.id] = session
            self._open_by_path[content_path] = session.id
        logger.info(
            "Started session %s on %s@%s from version %s by %s",
            session.id, content_path, branch_name, base_id, initiator.id,
        )
        return session

    def join_collaborative_session(
        self, session_id: str, author: VersionAuthor
    ) -> CollaborativeSession:
        """Add `author` to the participants of an open session.

        The current participants are notified of the join. Joining a session
        twice is a no-op.

        :raises SessionNotFound: If the session does not exist.
        :raises SessionClosed: If the session is no longer open.
        """
        session = self.get_session(session_id)
        with session.lock:
            session.require_open()
            if any(p.id == author.id for p in session.participants):
                return session
            session.participants.append(author)
            session.touch()
            session.channel.publish(
                SessionEvent(
                    SessionEventKind.JOINED, session.id, author_id=author.id
                ),
                exclude=author.id,
            )
        logger.info("Author %s joined session %s", author.id, session_id)
        return session

    def subscribe(self, session_id: str, author_id: str) -> Subscription:
        """Start receiving the events of a session.

        :raises ParticipantNotFound: If `author_id` is not a participant.
        """
        session = self.get_session(session_id)
        with session.lock:
            session.require_open()
            session.participant(author_id)
            return session.channel.subscribe(author_id)

    def unsubscribe(self, session_id: str, author_id: str) -> bool:
        session = self.get_session(session_id)
        return session.channel.unsubscribe(author_id)

    def apply_edit(
        self,
        session_id: str,
        author_id: str,
        payload: EditPayload,
    ) -> RealTimeChange:
        """Serialize an edit into the log of a session.

        The edit is applied to the working copy of the session as it stands
        when the edit is serialized, receives the next sequence number and is
        broadcast to every other subscriber.

        :raises SessionClosed: If the session is no longer open.
        :raises ParticipantNotFound: If `author_id` is not a participant.
        :raises InvalidEdit: If the edit does not fit in the working copy.
        """
        session = self.get_session(session_id)
        with session.lock:
            session.require_open()
            session.participant(author_id)
            change = session.append(author_id, payload)
            session.channel.publish(
                SessionEvent(
                    SessionEventKind.CHANGE, session.id,
                    author_id=author_id, change=change,
                ),
                exclude=author_id,
            )
        logger.debug(
            "Session %s: change #%d by %s",
            session_id, change.sequence_number, author_id,
        )
        return change

    def leave_collaborative_session(
        self, session_id: str, author_id: str
    ) -> CollaborativeSession:
        """Remove a participant; the last one to leave ends the session.

        :raises ParticipantNotFound: If `author_id` is not a participant.
        :raises ConflictOnCommit: If the last participant left and the
            session could not commit its changes.
        :raises VersioningError: If the last participant left and the flush
            failed for another reason. The participant stays in the session.
        """
        session = self.get_session(session_id)
        with session.lock:
            session.require_open()
            author = session.participant(author_id)
            last = len(session.participants) == 1
            if last:
                # Closes before the participant is removed, so a failed flush
                # leaves the session open with its last participant
                self._close(session, author)
            session.participants.remove(author)
            session.channel.unsubscribe(author_id)
            if not last:
                session.touch()
                session.channel.publish(SessionEvent(
                    SessionEventKind.LEFT, session.id, author_id=author_id
                ))
            logger.info("Author %s left session %s", author_id, session_id)
        if session.conflict is not None:
            raise session.conflict
        return session

    def end_collaborative_session(
        self,
        session_id: str,
        author: Optional[VersionAuthor] = None,
    ) -> CollaborativeSession:
        """Close a session and commit its changes as one version.

        :param session_id: The session to end.
        :param author: The author of the committed version. Defaults to the
            initiator of the session.
        :raises SessionClosed: If the session is no longer open.
        :raises ConflictOnCommit: If the branch head moved since the session
            started. The session is closed and the error carries its pending
            content and change log.
        """
        session = self.get_session(session_id)
        with session.lock:
            session.require_open()
            self._close(session, author)
        if session.conflict is not None:
            raise session.conflict
        return session

    def close_idle_sessions(
        self, now: Optional[datetime.datetime] = None
    ) -> List[CollaborativeSession]:
        """Close every open session idle for longer than the idle timeout.

        Idle sessions go through the same commit or conflict flow as
        :meth:`end_collaborative_session`, but conflicts are only reported to
        the subscribers and recorded on the session. A session whose changes
        cannot be committed for any other reason is closed as well; the error
        is recorded as :attr:`CollaborativeSession.error` and sent with the
        ``CLOSED`` event, and the working copy stays on the session.

        :param now: The reference time, the current time by default.
        :return: The sessions that were closed.
        """
        now = utcnow() if now is None else as_utc(now)
        timeout = datetime.timedelta(seconds=self.idle_timeout)
        with self._lock:
            candidates = list(self._sessions.values())

        closed = []
        for session in candidates:
            with session.lock:
                if not session.is_open:
                    continue
                if now - as_utc(session.last_activity) < timeout:
                    continue
                logger.info("Closing idle session %s", session.id)
                try:
                    self._close(session, None)
                except VersioningError as e:
                    logger.exception(
                        "Could not commit idle session %s", session.id
                    )
                    session.error = e
                    self._release(session)
                closed.append(session)
        return closed

    def get_session(self, session_id: str) -> CollaborativeSession:
        """Return an open session, or one of the recently closed ones.

        :raises SessionNotFound: If the session does not exist or was closed
            too long ago to be kept.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = self._closed.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get_open_session(
        self, content_path: str
    ) -> Optional[CollaborativeSession]:
        with self._lock:
            session_id = self._open_by_path.get(content_path)
            return None if session_id is None else self._sessions[session_id]

    def list_sessions(self) -> List[CollaborativeSession]:
        with self._lock:
            return list(self._sessions.values()) + list(self._closed.values())

    def _close(
        self,
        session: CollaborativeSession,
        author: Optional[VersionAuthor],
    ) -> None:
        # Must be called while holding `session.lock`
        session.state = SessionState.CLOSING
        author = session.initiator if author is None else author
        try:
            if session.has_pending_changes:
                self._flush(session, author)
        except VersioningError:
            # A failed flush that is not a conflict keeps the session open
            # so the flush can be retried
            session.state = SessionState.OPEN
            raise
        self._release(session)

    def _release(self, session: CollaborativeSession) -> None:
        # Must be called while holding `session.lock`
        session.state = SessionState.CLOSED
        session.channel.publish(SessionEvent(
            SessionEventKind.CLOSED, session.id, error=session.error
        ))
        session.channel.close()
        with self._lock:
            self._sessions.pop(session.id, None)
            if self._open_by_path.get(session.content_path) == session.id:
                del self._open_by_path[session.content_path]
            self._closed[session.id] = session
            while len(self._closed) > self._config.closed_sessions_kept:
                self._closed.popitem(last=False)
        logger.info(
            "Closed session %s of %s with %d change(s)",
            session.id, session.content_path, len(session.change_log),
        )

    def _flush(
        self, session: CollaborativeSession, author: VersionAuthor
    ) -> None:
        try:
            version = self._history.create_version(
                session.content_path,
                session.content,
                author,
                self._diff.diff(session.base_content, session.content),
                session.base_version_id,
                branch_name=session.branch_name,
                message=(
                    f"Collaborative session {session.id} "
                    f"({len(session.change_log)} edit(s))"
                ),
            )
        except StaleParentVersion as e:
            session.conflict = ConflictOnCommit(
                session.id,
                session.content_path,
                expected=session.base_version_id,
                actual=e.actual,
                pending_content=session.content,
                pending_changes=list(session.change_log),
            )
            session.channel.publish(SessionEvent(
                SessionEventKind.CONFLICT, session.id,
                error=session.conflict,
            ))
            logger.warning(str(session.conflict))
            warnings.warn(str(session.conflict))
            return

        session.committed_version_id = version.id
        session.channel.publish(SessionEvent(
            SessionEventKind.COMMITTED, session.id,
            author_id=author.id, version_id=version.id,
        ))
