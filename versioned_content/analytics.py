""" Read-only aggregates over the version histories.

The aggregates are computed from committed versions on every call and are
never stored.
"""
from __future__ import annotations

import dataclasses
import datetime
from collections import Counter
from typing import List, Optional, Tuple

from versioned_content.errors import ContentNotFound
from versioned_content.history import VersionHistoryManager
from versioned_content.models import ContentVersion
from versioned_content.utils.ids import as_utc, utcnow

RECENT_ACTIVITY_LIMIT = 10


@dataclasses.dataclass(frozen=True)
class ChangeFrequency:
    daily: int
    weekly: int
    monthly: int


@dataclasses.dataclass(frozen=True)
class VersioningAnalytics:
    content_path: str
    total_versions: int
    total_changes: int
    contributors: int
    most_active_contributor: Optional[str]
    merges: int
    rollbacks: int
    branches: int
    change_frequency: ChangeFrequency
    word_count_change: int
    section_changes: int
    published_version_id: Optional[str]


@dataclasses.dataclass(frozen=True)
class PlatformAnalytics:
    total_content: int
    total_versions: int
    total_contributors: int
    average_versions_per_content: float
    most_active_content: Optional[str]
    recent_activity: Tuple[ContentVersion, ...]


def _change_frequency(
    versions: List[ContentVersion], now: datetime.datetime
) -> ChangeFrequency:
    def within(days: int) -> int:
        since = now - datetime.timedelta(days=days)
        return sum(1 for v in versions if as_utc(v.created_at) >= since)

    return ChangeFrequency(
        daily=within(1), weekly=within(7), monthly=within(30)
    )


def content_analytics(
    history: VersionHistoryManager,
    content_path: str,
    now: Optional[datetime.datetime] = None,
) -> VersioningAnalytics:
    """Aggregate the history of one content path.

    :raises ContentNotFound: If the content path has no versions.
    """
    now = utcnow() if now is None else as_utc(now)
    snapshot = history.get_version_history(content_path)
    versions = list(snapshot.versions)

    authors = Counter(v.author.id for v in versions)
    most_active = None
    if authors:
        # Ties go to the author that committed first
        most_active = max(authors, key=lambda a: authors[a])

    return VersioningAnalytics(
        content_path=content_path,
        total_versions=snapshot.total_versions,
        total_changes=sum(len(v.changes) for v in versions),
        contributors=len(authors),
        most_active_contributor=most_active,
        merges=sum(1 for v in versions if v.is_merge),
        rollbacks=sum(
            1 for v in versions if v.rollback_of is not None
        ),
        branches=len(snapshot.branches),
        change_frequency=_change_frequency(versions, now),
        word_count_change=(
            versions[-1].metadata.word_count - versions[0].metadata.word_count
        ),
        section_changes=len({
            c.section for v in versions for c in v.changes
        }),
        published_version_id=(
            None if snapshot.published_version is None
            else snapshot.published_version.id
        ),
    )


def platform_analytics(history: VersionHistoryManager) -> PlatformAnalytics:
    """Aggregate the histories of every content path."""
    per_path = {}
    for content_path in history.store.content_paths():
        versions = history.store.list_versions(content_path)
        if versions:
            per_path[content_path] = versions

    all_versions = [v for versions in per_path.values() for v in versions]
    total_versions = len(all_versions)
    most_active = None
    if per_path:
        most_active = max(
            sorted(per_path), key=lambda path: len(per_path[path])
        )
    recent = sorted(
        all_versions, key=lambda v: as_utc(v.created_at), reverse=True
    )[:RECENT_ACTIVITY_LIMIT]

    return PlatformAnalytics(
        total_content=len(per_path),
        total_versions=total_versions,
        total_contributors=len({v.author.id for v in all_versions}),
        average_versions_per_content=(
            total_versions / len(per_path) if per_path else 0.0
        ),
        most_active_content=most_active,
        recent_activity=tuple(recent),
    )


def get_versioning_analytics(
    history: VersionHistoryManager,
    content_path: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
):
    """Return the analytics of `content_path`, or of every content path when
    it is omitted.

    :raises ContentNotFound: If `content_path` has no versions.
    """
    if content_path is None:
        return platform_analytics(history)
    if not history.store.has_history(content_path):
        raise ContentNotFound(content_path)
    return content_analytics(history, content_path, now)
