"""File change extractor: turns `pulls/{pr}/files` entries into parsed hunks."""

from ..diff_hunk import parse_patch_cached
from ..models import FileChange, GitChangeType

# GitHub file status -> change type
STATUS_MAP = {
    "added": GitChangeType.ADD,
    "removed": GitChangeType.DELETE,
    "modified": GitChangeType.MODIFY,
    "changed": GitChangeType.MODIFY,
    "renamed": GitChangeType.RENAME,
    "copied": GitChangeType.ADD,
}


def extract_file_change(file_data: dict, base_sha: str, head_sha: str) -> FileChange:
    """Extract file change data from GitHub API response.

    Added files have no base version and deleted files no head version, so
    the corresponding ref is left empty.

    Raises:
        MalformedDiffError: if the file's patch cannot be parsed.
    """
    status = STATUS_MAP.get(file_data.get("status", "modified"), GitChangeType.MODIFY)

    return FileChange(
        file_name=file_data.get("filename", ""),
        status=status,
        diff_hunks=parse_patch_cached(file_data.get("patch") or ""),
        base_ref="" if status == GitChangeType.ADD else base_sha,
        head_ref="" if status == GitChangeType.DELETE else head_sha,
        previous_file_name=file_data.get("previous_filename"),
        blob_url=file_data.get("blob_url"),
    )
