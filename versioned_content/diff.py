""" Line-granular differences between content snapshots.

The :class:`DiffEngine` computes a minimal edit script between two contents
with Myers' O(N*D) algorithm and groups the script into
:data:`~versioned_content.models.VersionChange` entries. The change list
satisfies the round-trip law: ``apply_changes(a, diff(a, b)) == b``.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from versioned_content.errors import ValidationError, VersionNotFound
from versioned_content.models import (
    Addition,
    ChangeImpact,
    Deletion,
    DiffStats,
    LineRange,
    Modification,
    VersionChange,
    VersionDiff,
    is_heading,
    join_lines,
    section_of,
    split_lines,
)

logger = logging.getLogger(__name__)

# Edit script operations
_KEEP = '='
_DELETE = '-'
_INSERT = '+'


def _shortest_edit_trace(
    a: Sequence[str], b: Sequence[str]
) -> List[Dict[int, int]]:
    """Run the forward pass of Myers' algorithm.

    :return: The furthest reaching x for every diagonal ``k``, snapshotted at
        the start of every edit distance ``d``.
    """
    n, m = len(a), len(b)
    v: Dict[int, int] = {1: 0}
    trace: List[Dict[int, int]] = []
    for d in range(n + m + 1):
        trace.append(dict(v))
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[k - 1] < v[k + 1]):
                x = v[k + 1]
            else:
                x = v[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            v[k] = x
            if x >= n and y >= m:
                return trace
    return trace  # pragma: nocover


def edit_script(
    a: Sequence[str], b: Sequence[str]
) -> List[Tuple[str, int, int]]:
    """Compute a minimal edit script turning ``a`` into ``b``.

    Ties are broken the same way for identical inputs: when a deletion and an
    insertion reach equally far, the deletion is taken first, which keeps the
    earliest matching lines of ``b`` aligned with ``a``.

    :return: A list of ``(op, x, y)`` triples where ``op`` is one of ``'='``,
        ``'-'`` or ``'+'`` and ``x``/``y`` are the indices in ``a``/``b``.
    """
    trace = _shortest_edit_trace(a, b)
    x, y = len(a), len(b)
    script: List[Tuple[str, int, int]] = []
    for d in range(len(trace) - 1, -1, -1):
        v = trace[d]
        k = x - y
        if k == -d or (k != d and v.get(k - 1, -1) < v.get(k + 1, -1)):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = v[prev_k]
        prev_y = prev_x - prev_k
        while x > prev_x and y > prev_y:
            script.append((_KEEP, x - 1, y - 1))
            x -= 1
            y -= 1
        if d > 0:
            if x == prev_x:
                script.append((_INSERT, x, y - 1))
            else:
                script.append((_DELETE, x - 1, y))
        x, y = prev_x, prev_y
    script.reverse()
    return script


def _impact(old_lines: List[str], new_lines: List[str]) -> ChangeImpact:
    if any(is_heading(line) for line in old_lines):
        return ChangeImpact.BREAKING
    touched = max(len(old_lines), len(new_lines))
    if touched > 10:
        return ChangeImpact.MAJOR
    if touched > 3:
        return ChangeImpact.MODERATE
    return ChangeImpact.MINOR


def _hunk_to_change(
    old: List[str],
    x0: int,
    deleted: List[str],
    inserted: List[str],
) -> VersionChange:
    impact = _impact(deleted, inserted)
    if not deleted:
        section = section_of(old, x0 - 1) if x0 > 0 else 'content'
        return Addition(
            section=section,
            line_range=LineRange(x0 + 1, x0),
            new_content=join_lines(inserted),
            impact=impact,
        )
    line_range = LineRange(x0 + 1, x0 + len(deleted))
    section = section_of(old, x0)
    if not inserted:
        return Deletion(
            section=section,
            line_range=line_range,
            old_content=join_lines(deleted),
            impact=impact,
        )
    return Modification(
        section=section,
        line_range=line_range,
        old_content=join_lines(deleted),
        new_content=join_lines(inserted),
        impact=impact,
    )


def _sort_key(change: VersionChange) -> Tuple[int, int]:
    # An insertion at line ``s`` goes before a change that starts at ``s``
    return change.line_range.start, 0 if isinstance(change, Addition) else 1


def apply_changes(content: str, changes: Iterable[VersionChange]) -> str:
    """Apply a list of non-overlapping changes to ``content``.

    All line ranges are interpreted against ``content``; the changes are
    applied bottom-up so that earlier ranges stay valid.

    :raises ValidationError: If a change does not fit ``content`` or two
        changes touch the same lines.
    """
    lines = split_lines(content)
    ordered = sorted(changes, key=_sort_key)

    previous_end = 0
    for change in ordered:
        rng = change.line_range
        if rng.start < 1 or rng.end > len(lines) or rng.start > len(lines) + 1:
            raise ValidationError(
                f"Change at lines {rng.start}..{rng.end} does not fit content "
                f"of {len(lines)} lines."
            )
        if rng.start <= previous_end:
            raise ValidationError(
                f"Change at lines {rng.start}..{rng.end} overlaps a "
                f"previous change."
            )
        if not rng.is_empty:
            if join_lines(lines[rng.start - 1:rng.end]) != change.old_content:
                raise ValidationError(
                    f"Change at lines {rng.start}..{rng.end} does not match "
                    f"the content it is applied to."
                )
            previous_end = rng.end

    for change in reversed(ordered):
        rng = change.line_range
        new_lines = (
            [] if change.new_content is None
            else split_lines(change.new_content)
        )
        lines[rng.start - 1:rng.end] = new_lines
    return join_lines(lines)


def compute_stats(changes: Iterable[VersionChange]) -> DiffStats:
    added = removed = modified = 0
    for change in changes:
        if isinstance(change, Addition):
            added += 1
        elif isinstance(change, Deletion):
            removed += 1
        else:
            modified += 1
    return DiffStats(added=added, removed=removed, modified=modified)


class DiffEngine:
    """Computes deterministic change-sets between contents and versions.

    :param store: The version store used to look up versions by id. Only
        needed by :meth:`generate_diff`.
    """

    def __init__(self, store=None) -> None:
        self._store = store

    @staticmethod
    def diff(from_content: str, to_content: str) -> List[VersionChange]:
        """Return the ordered list of changes turning one content into the
        other."""
        old = split_lines(from_content)
        new = split_lines(to_content)

        changes: List[VersionChange] = []
        x = 0
        hunk_start: Optional[int] = None
        deleted: List[str] = []
        inserted: List[str] = []
        for op, i, j in edit_script(old, new):
            if op == _KEEP:
                if hunk_start is not None:
                    changes.append(
                        _hunk_to_change(old, hunk_start, deleted, inserted)
                    )
                    hunk_start, deleted, inserted = None, [], []
                x += 1
                continue
            if hunk_start is None:
                hunk_start = x
            if op == _DELETE:
                deleted.append(old[i])
                x += 1
            else:
                inserted.append(new[j])
        if hunk_start is not None:
            changes.append(_hunk_to_change(old, hunk_start, deleted, inserted))
        return changes

    @staticmethod
    def apply(content: str, changes: Iterable[VersionChange]) -> str:
        return apply_changes(content, changes)

    def generate_diff(
        self,
        content_path: str,
        from_version_id: str,
        to_version_id: str,
    ) -> VersionDiff:
        """Compute the diff between two committed versions.

        Versions are immutable, so the diff is recomputed on every call and
        never stored.

        :raises VersionNotFound: If either version does not exist.
        """
        if self._store is None:
            raise RuntimeError("DiffEngine was created without a store.")
        contents = []
        for version_id in (from_version_id, to_version_id):
            version = self._store.get_version(content_path, version_id)
            if version is None:
                raise VersionNotFound(content_path, version_id)
            contents.append(version.content)

        changes = tuple(self.diff(*contents))
        logger.debug(
            "Diff %s..%s of %s: %d change(s)",
            from_version_id, to_version_id, content_path, len(changes),
        )
        return VersionDiff(
            from_version_id=from_version_id,
            to_version_id=to_version_id,
            changes=changes,
            stats=compute_stats(changes),
        )
