from typing import Any, Dict, Iterable, List

from colorama import Fore

from versioned_content.models import (
    CHANGE_KINDS,
    Addition,
    Branch,
    BranchStatus,
    ChangeImpact,
    ContentMetadata,
    ContentVersion,
    Deletion,
    LineRange,
    Modification,
    Publication,
    VersionAuthor,
    VersionChange,
    change_kind,
    split_lines,
)
from versioned_content.utils.ids import as_utc


def author_to_document(author: VersionAuthor) -> Dict[str, Any]:
    return {
        'id': author.id,
        'name': author.name,
        'email': author.email,
        'role': author.role,
        'expertise': list(author.expertise),
    }


def author_from_document(doc: Dict[str, Any]) -> VersionAuthor:
    return VersionAuthor(
        id=doc['id'],
        name=doc['name'],
        email=doc.get('email', ''),
        role=doc.get('role', 'contributor'),
        expertise=tuple(doc.get('expertise', ())),
    )


def change_to_document(change: VersionChange) -> Dict[str, Any]:
    doc = {
        'kind': change_kind(change),
        'section': change.section,
        'line_range': [change.line_range.start, change.line_range.end],
        'impact': change.impact.value,
    }
    if change.old_content is not None:
        doc['old_content'] = change.old_content
    if change.new_content is not None:
        doc['new_content'] = change.new_content
    return doc


def change_from_document(doc: Dict[str, Any]) -> VersionChange:
    kind = doc['kind']
    if kind not in CHANGE_KINDS:
        raise ValueError(f"Unknown version change kind '{kind}'")
    common = dict(
        section=doc['section'],
        line_range=LineRange(*doc['line_range']),
        impact=ChangeImpact(doc['impact']),
    )
    if kind == 'addition':
        return Addition(new_content=doc['new_content'], **common)
    if kind == 'deletion':
        return Deletion(old_content=doc['old_content'], **common)
    return Modification(
        old_content=doc['old_content'],
        new_content=doc['new_content'],
        **common,
    )


def version_to_document(version: ContentVersion) -> Dict[str, Any]:
    return {
        '_id': version.id,
        'content_path': version.content_path,
        'parent_version_ids': list(version.parent_version_ids),
        'branch_id': version.branch_id,
        'branch_name': version.branch_name,
        'content': version.content,
        'changes': [change_to_document(c) for c in version.changes],
        'author': author_to_document(version.author),
        'created_at': version.created_at,
        'message': version.message,
        'number': version.number,
        'rollback_of': version.rollback_of,
    }


def version_from_document(doc: Dict[str, Any]) -> ContentVersion:
    return ContentVersion(
        id=doc['_id'],
        content_path=doc['content_path'],
        parent_version_ids=tuple(doc['parent_version_ids']),
        branch_id=doc['branch_id'],
        branch_name=doc['branch_name'],
        content=doc['content'],
        changes=tuple(change_from_document(c) for c in doc['changes']),
        author=author_from_document(doc['author']),
        created_at=as_utc(doc['created_at']),
        metadata=ContentMetadata.from_content(doc['content']),
        message=doc.get('message', ''),
        number=doc['number'],
        rollback_of=doc.get('rollback_of'),
    )


def branch_to_document(branch: Branch) -> Dict[str, Any]:
    return {
        '_id': branch.id,
        'content_path': branch.content_path,
        'name': branch.name,
        'description': branch.description,
        'base_version_id': branch.base_version_id,
        'head_version_id': branch.head_version_id,
        'author_id': branch.author_id,
        'created_at': branch.created_at,
        'updated_at': branch.updated_at,
        'status': branch.status.value,
    }


def branch_from_document(doc: Dict[str, Any]) -> Branch:
    return Branch(
        id=doc['_id'],
        content_path=doc['content_path'],
        name=doc['name'],
        description=doc.get('description', ''),
        base_version_id=doc['base_version_id'],
        head_version_id=doc['head_version_id'],
        author_id=doc['author_id'],
        created_at=as_utc(doc['created_at']),
        updated_at=as_utc(doc['updated_at']),
        status=BranchStatus(doc.get('status', BranchStatus.ACTIVE.value)),
    )


def publication_from_document(doc: Dict[str, Any]) -> Publication:
    return Publication(
        version_id=doc['published_version_id'],
        publisher_id=doc['publisher_id'],
        published_at=as_utc(doc['published_at']),
    )


def format_changes(changes: Iterable[VersionChange]) -> str:
    """Render changes as unified-diff-like hunks."""
    out: List[str] = []
    for change in changes:
        rng = change.line_range
        out.append(
            f"@@ {change_kind(change)} {rng.start},{len(rng)} "
            f"[{change.section}] ({change.impact.value}) @@"
        )
        if change.old_content is not None:
            out.extend('-' + line for line in split_lines(change.old_content))
        if change.new_content is not None:
            out.extend('+' + line for line in split_lines(change.new_content))
    return '\n'.join(out)


def colour_diff(diff_str: str) -> str:
    lines = diff_str.splitlines()
    coloured_lines = []
    for line in lines:
        if line.startswith('@@'):
            coloured_lines.append(Fore.CYAN + line + Fore.RESET)
        elif line.startswith('+'):
            coloured_lines.append(Fore.GREEN + line + Fore.RESET)
        elif line.startswith('-'):
            coloured_lines.append(Fore.RED + line + Fore.RESET)
        else:
            coloured_lines.append(line)
    return '\n'.join(coloured_lines)
