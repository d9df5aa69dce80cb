"""Diff retrieval and presentation for ``ger diff``.

:func:`get_diff` chooses the Gerrit endpoint that matches the requested
:class:`~ger.models.DiffOptions` and returns one of three shapes:

* ``str`` -- unified diff text (a patch, one file, or concatenated full
  file contents),
* ``list[str]`` -- file paths, for ``--format files``,
* ``dict`` -- structured JSON, for ``--format json``.
"""

from __future__ import annotations

from typing import Any, Union

from ger.client import GerritClient
from ger.exceptions import ApiResponseError, AuthError, NotFoundError
from ger.models import DiffOptions, FileDiffContent

# Synthetic entries Gerrit lists alongside real files.
MAGIC_FILES = frozenset({"/COMMIT_MSG", "/MERGE_LIST"})

UNREADABLE_CONTENT = "Binary file or permission denied"

DiffResult = Union[str, list[str], dict[str, Any]]


def convert_to_unified_diff(diff: FileDiffContent, path: str) -> str:
    """Render a structured file diff as unified-style text.

    Gerrit's own ``diff_header`` is used when present, otherwise a minimal
    ``--- a/`` / ``+++ b/`` header. Lines common to both sides are prefixed
    with a space, removed lines with ``-`` and added lines with ``+``.
    Skipped regions produce no output.
    """
    lines: list[str] = []
    if diff.diff_header:
        lines.extend(diff.diff_header)
    else:
        lines.append(f"--- a/{path}")
        lines.append(f"+++ b/{path}")

    for section in diff.content:
        lines.extend(f" {line}" for line in section.ab or [])
        lines.extend(f"-{line}" for line in section.a or [])
        lines.extend(f"+{line}" for line in section.b or [])

    return "\n".join(lines)


def get_diff(client: GerritClient, change_id: str, options: DiffOptions) -> DiffResult:
    """Fetch the diff of a change in the shape selected by *options*.

    Args:
        client: An open client.
        change_id: Change number, Change-Id, or long id.
        options: Format, patchset, file, full-file, and base selection.

    Returns:
        See the module docstring for the possible shapes.

    Raises:
        NotFoundError: If the change, revision, or file does not exist.
    """
    revision = str(options.patchset) if options.patchset else "current"
    base = str(options.base) if options.base else None

    if options.format == "files":
        return list(client.get_files(change_id, revision))

    if options.file:
        file_diff = client.get_file_diff(change_id, options.file, revision, base)
        if options.format == "json":
            return file_diff.model_dump(exclude_none=True)
        return convert_to_unified_diff(file_diff, options.file)

    if options.full_files:
        contents: dict[str, str] = {}
        for path in client.get_files(change_id, revision):
            if path in MAGIC_FILES:
                continue
            try:
                contents[path] = client.get_file_content(change_id, path, revision)
            except (AuthError, NotFoundError, ApiResponseError):
                contents[path] = UNREADABLE_CONTENT
        if options.format == "json":
            return contents
        return "\n".join(f"=== {path} ===\n{content}\n" for path, content in contents.items())

    if options.format == "json":
        files = client.get_files(change_id, revision)
        return {path: info.model_dump(exclude_none=True) for path, info in files.items()}

    return client.get_patch(change_id, revision)
