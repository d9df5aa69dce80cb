"""Diff command -- print the changes a revision makes.

Output depends on the selected format:

* ``unified`` (default) -- the revision as a patch, or one file as a
  unified diff with ``--file``.
* ``files`` -- the paths touched by the revision.
* ``json`` -- Gerrit's structured file list or file diff.

With ``--xml`` the result is wrapped in a ``diff_result`` document.
"""

from __future__ import annotations

import json
from typing import Optional

import typer

from ger.commands._common import open_client
from ger.diff import get_diff
from ger.exceptions import InvalidUsageError
from ger.models import DiffOptions
from ger.output import OutputFormat, format_response, get_output, paged_output, print_data

DIFF_FORMATS = ("unified", "json", "files")


def diff_command(
    ctx: typer.Context,
    change_id: str = typer.Argument(help="Change number, Change-Id, or full id."),
    format: str = typer.Option(
        "unified", "--format", help="Diff format: unified, json, or files."
    ),
    patchset: Optional[int] = typer.Option(
        None, "--patchset", help="Patchset number (default: current)."
    ),
    file: Optional[str] = typer.Option(None, "--file", help="Show only this file."),
    files_only: bool = typer.Option(
        False, "--files-only", help="List changed files only (same as --format files)."
    ),
    full_files: bool = typer.Option(
        False, "--full-files", help="Show full content of changed files."
    ),
    base: Optional[int] = typer.Option(
        None, "--base", help="Diff against this patchset instead of the parent."
    ),
) -> None:
    """Show the diff of a change.

    Example::

        ger diff 12345
        ger diff 12345 --files-only
        ger diff 12345 --file src/main.py --base 2
    """
    if format not in DIFF_FORMATS:
        raise InvalidUsageError(
            f"Unknown diff format '{format}'. Choose from: {', '.join(DIFF_FORMATS)}"
        )

    options = DiffOptions(
        format="files" if files_only else format,
        patchset=patchset,
        file=file,
        full_files=full_files,
        base=base,
    )
    with open_client(ctx) as client:
        result = get_diff(client, change_id, options)

    output = get_output()
    if output.is_structured:
        data = {"status": "success", "change_id": change_id}
        if isinstance(result, list):
            data["files"] = result
        elif output.format == OutputFormat.XML and isinstance(result, dict):
            data["content"] = json.dumps(result, indent=2, ensure_ascii=False)
        else:
            data["content"] = result
        format_response(data, root="diff_result")
        return

    if isinstance(result, list):
        for path in result:
            print_data(path)
    elif isinstance(result, dict):
        format_response(result)
    else:
        paged_output(result)
