from importlib.metadata import PackageNotFoundError, version

from versioned_content.engine import ContentVersioningEngine
from versioned_content.models import (
    Addition,
    Branch,
    ChangeImpact,
    ContentVersion,
    DeleteText,
    Deletion,
    InsertText,
    LineRange,
    MergeResult,
    Modification,
    VersionAuthor,
)

try:
    __version__ = version("versioned-content")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    '__version__',
    'ContentVersioningEngine',
    'Addition',
    'Branch',
    'ChangeImpact',
    'ContentVersion',
    'DeleteText',
    'Deletion',
    'InsertText',
    'LineRange',
    'MergeResult',
    'Modification',
    'VersionAuthor',
]
