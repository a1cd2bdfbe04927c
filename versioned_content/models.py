""" The data model of the versioning engine.

Every record that is persisted or handed out to callers is an immutable
dataclass. Versions reference their parents by id only, so the version graph
of a content path is an arena of records keyed by version id rather than a
structure of live object references.
"""
from __future__ import annotations

import dataclasses
import datetime
import enum
import hashlib
import math
import re
from typing import Dict, List, Optional, Tuple, Union

_HEADING_RE = re.compile(r'^#{1,6}\s+(.+?)\s*#*\s*$')


class ChangeImpact(str, enum.Enum):
    MINOR = 'minor'
    MODERATE = 'moderate'
    MAJOR = 'major'
    BREAKING = 'breaking'


class VersionStatus(str, enum.Enum):
    DRAFT = 'draft'
    PUBLISHED = 'published'


class BranchStatus(str, enum.Enum):
    ACTIVE = 'active'
    MERGED = 'merged'


@dataclasses.dataclass(frozen=True)
class VersionAuthor:
    """ An already authenticated identity supplied by the identity provider.
    """
    id: str
    name: str
    email: str = ''
    role: str = 'contributor'
    expertise: Tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class LineRange:
    """ A 1-based, inclusive range of lines of the *old* content.

    An empty range (``end == start - 1``) denotes an insertion point placed
    before line ``start``.
    """
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.end < self.start

    def __len__(self) -> int:
        return max(0, self.end - self.start + 1)

    def overlaps(self, other: LineRange) -> bool:
        """Check whether two ranges touch the same old lines.

        Two insertion points overlap when they are at the same position.  An
        insertion point overlaps a non-empty range only when it falls strictly
        inside it.
        """
        if self.is_empty and other.is_empty:
            return self.start == other.start
        if self.is_empty:
            return other.start < self.start <= other.end
        if other.is_empty:
            return self.start < other.start <= self.end
        return self.start <= other.end and other.start <= self.end


@dataclasses.dataclass(frozen=True)
class Addition:
    """ Lines inserted before ``line_range.start`` of the old content. """
    section: str
    line_range: LineRange
    new_content: str
    impact: ChangeImpact = ChangeImpact.MINOR

    @property
    def old_content(self) -> None:
        return None


@dataclasses.dataclass(frozen=True)
class Deletion:
    """ Lines of the old content that were removed. """
    section: str
    line_range: LineRange
    old_content: str
    impact: ChangeImpact = ChangeImpact.MINOR

    @property
    def new_content(self) -> None:
        return None


@dataclasses.dataclass(frozen=True)
class Modification:
    """ Lines of the old content that were replaced by other lines. """
    section: str
    line_range: LineRange
    old_content: str
    new_content: str
    impact: ChangeImpact = ChangeImpact.MINOR


VersionChange = Union[Addition, Deletion, Modification]

CHANGE_KINDS: Dict[str, type] = {
    'addition': Addition,
    'deletion': Deletion,
    'modification': Modification,
}


def change_kind(change: VersionChange) -> str:
    """Return the tag of a version change variant."""
    for kind, cls in CHANGE_KINDS.items():
        if isinstance(change, cls):
            return kind
    raise TypeError(f"Not a version change: {change!r}")


@dataclasses.dataclass(frozen=True)
class ContentMetadata:
    title: str
    content_hash: str
    word_count: int
    reading_time: int

    @classmethod
    def from_content(cls, content: str) -> ContentMetadata:
        title = 'Untitled'
        for line in content.split('\n'):
            match = _HEADING_RE.match(line)
            if match is not None and line.startswith('# '):
                title = match.group(1)
                break
        word_count = len(content.split())
        reading_time = math.ceil(word_count / 200) if word_count else 0
        digest = hashlib.sha256(content.encode('utf-8')).hexdigest()
        return cls(
            title=title,
            content_hash=f"sha256-{digest}",
            word_count=word_count,
            reading_time=max(reading_time, 1) if content.strip() else 0,
        )


@dataclasses.dataclass(frozen=True)
class ContentVersion:
    """ One immutable, committed snapshot of a content path.

    ``number`` is assigned by the store when the version is appended, and
    ``status`` is derived from the published pointer whenever the version is
    read through the history manager. ``rollback_of`` is the id of the
    version whose content a rollback restored.
    """
    id: str
    content_path: str
    parent_version_ids: Tuple[str, ...]
    branch_id: str
    branch_name: str
    content: str
    changes: Tuple[VersionChange, ...]
    author: VersionAuthor
    created_at: datetime.datetime
    metadata: ContentMetadata
    message: str = ''
    number: int = 0
    status: VersionStatus = VersionStatus.DRAFT
    rollback_of: Optional[str] = None

    @property
    def is_merge(self) -> bool:
        return len(self.parent_version_ids) == 2

    @property
    def first_parent_id(self) -> Optional[str]:
        if not self.parent_version_ids:
            return None
        return self.parent_version_ids[0]

    def __str__(self) -> str:
        return f"""\
            *   version:   {self.number} ({self.id})
                branch:    {self.branch_name}
                author:    {self.author.name}
                message:   {self.message}
                timestamp: {self.created_at}
            """

    def __repr__(self) -> str:
        return f"<version: {self.number}, branch: {self.branch_name}>"


@dataclasses.dataclass(frozen=True)
class Branch:
    id: str
    content_path: str
    name: str
    description: str
    base_version_id: str
    head_version_id: str
    author_id: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
    status: BranchStatus = BranchStatus.ACTIVE


@dataclasses.dataclass(frozen=True)
class Publication:
    version_id: str
    publisher_id: str
    published_at: datetime.datetime


@dataclasses.dataclass(frozen=True)
class VersionHistory:
    """ A read-only snapshot of the history of a content path. """
    content_path: str
    trunk: str
    latest_version: ContentVersion
    published_version: Optional[ContentVersion]
    branches: Dict[str, str]
    versions: Tuple[ContentVersion, ...]

    @property
    def total_versions(self) -> int:
        return len(self.versions)


@dataclasses.dataclass(frozen=True)
class DiffStats:
    added: int = 0
    removed: int = 0
    modified: int = 0


@dataclasses.dataclass(frozen=True)
class VersionDiff:
    from_version_id: str
    to_version_id: str
    changes: Tuple[VersionChange, ...]
    stats: DiffStats


@dataclasses.dataclass(frozen=True)
class ConflictingChanges:
    source: VersionChange
    target: VersionChange


@dataclasses.dataclass(frozen=True)
class MergeConflict:
    """ The colliding changes that prevented a merge. """
    content_path: str
    source_branch: str
    target_branch: str
    ancestor_version_id: str
    source_head_id: str
    target_head_id: str
    conflicts: Tuple[ConflictingChanges, ...]


@dataclasses.dataclass(frozen=True)
class MergeResult:
    merged_version: Optional[ContentVersion] = None
    branch: Optional[Branch] = None
    conflict: Optional[MergeConflict] = None
    up_to_date: bool = False

    @property
    def succeeded(self) -> bool:
        return self.merged_version is not None

    def raise_for_conflict(self) -> None:
        from versioned_content.errors import MergeConflictError
        if self.conflict is not None:
            raise MergeConflictError(self.conflict)


@dataclasses.dataclass(frozen=True)
class InsertText:
    position: int
    text: str


@dataclasses.dataclass(frozen=True)
class DeleteText:
    position: int
    length: int


EditPayload = Union[InsertText, DeleteText]


@dataclasses.dataclass(frozen=True)
class RealTimeChange:
    session_id: str
    author_id: str
    sequence_number: int
    payload: EditPayload
    appended_at: datetime.datetime


def split_lines(content: str) -> List[str]:
    """Split content into line tokens so that joining them with ``\\n``
    reproduces the content exactly."""
    return content.split('\n')


def join_lines(lines: List[str]) -> str:
    return '\n'.join(lines)


def section_of(lines: List[str], index: int) -> str:
    """Return the nearest markdown heading at or above ``lines[index]``."""
    for i in range(min(index, len(lines) - 1), -1, -1):
        match = _HEADING_RE.match(lines[i])
        if match is not None:
            return match.group(1)
    return 'content'


def is_heading(line: str) -> bool:
    return _HEADING_RE.match(line) is not None
