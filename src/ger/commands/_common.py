"""Helpers shared by the change-related commands."""

from __future__ import annotations

from typing import Any, Optional

import typer

from ger.cache import CacheManager
from ger.client import GerritClient
from ger.credentials import resolve_credentials
from ger.models import ChangeInfo
from ger.output import get_output, info


def get_cache(ctx: typer.Context) -> Optional[CacheManager]:
    """Return the cache opened by the root callback, if any."""
    return ctx.obj.get("cache") if ctx.obj else None


def open_client(ctx: typer.Context) -> GerritClient:
    """Build a client from the resolved credentials and the invocation's cache.

    Use as a context manager::

        with open_client(ctx) as client:
            client.get_change("12345")
    """
    transport = ctx.obj.get("transport") if ctx.obj else None
    return GerritClient(resolve_credentials(), cache=get_cache(ctx), transport=transport)


def change_summary(change: ChangeInfo) -> dict[str, Any]:
    """Flatten a change into the fields every listing shows."""
    return {
        "number": change.number,
        "subject": change.subject,
        "project": change.project,
        "branch": change.branch,
        "status": change.status.value,
        "change_id": change.change_id,
        "updated": change.updated or None,
        "owner": change.owner.display_name,
    }


def emit_changes(
    changes: list[ChangeInfo], empty_message: str, title: str, root: str = "changes_result"
) -> None:
    """Print a list of changes as a table, or as a document in JSON/XML mode."""
    output = get_output()
    if output.is_structured:
        output.format_response(
            {
                "status": "success",
                "count": len(changes),
                "changes": [change_summary(c) for c in changes],
            },
            root=root,
        )
        return

    if not changes:
        info(empty_message)
        return

    rows = [
        [
            str(c.number),
            c.subject,
            c.project,
            c.branch,
            c.status.value,
            c.owner.display_name,
            c.updated[:16],
        ]
        for c in changes
    ]
    output.print_table(
        ["Number", "Subject", "Project", "Branch", "Status", "Owner", "Updated"],
        rows,
        title=title,
    )
