"""Change commands -- show, list, review, and abandon changes.

Every command here talks to Gerrit through
:class:`~ger.client.GerritClient`, which reads through and maintains the
local change cache:

* ``ger show`` returns a fresh cached copy when one exists.
* ``ger mine`` and ``ger incoming`` always query the server and refresh the
  cache with every change they list.
* ``ger comment`` and ``ger abandon`` invalidate the cached change so the
  next read sees the server's new state.
"""

from __future__ import annotations

from typing import Optional

import typer

from ger.commands._common import change_summary, emit_changes, open_client
from ger.models import ReviewInput
from ger.output import format_response, get_output, print_data, print_table, success

MINE_QUERY = "owner:self status:open"
INCOMING_QUERY = "reviewer:self -owner:self status:open"


def show_command(
    ctx: typer.Context,
    change_id: str = typer.Argument(help="Change number, Change-Id, or full id."),
) -> None:
    """Show details of a change.

    Example::

        ger show 12345
        ger --xml show I8473b95934b5732ac55d26311a706c9c2bde9940
    """
    with open_client(ctx) as client:
        change = client.get_change(change_id)

    output = get_output()
    if output.is_structured:
        data = change_summary(change)
        data.update(
            id=change.id,
            created=change.created or None,
            insertions=change.insertions,
            deletions=change.deletions,
            owner_email=change.owner.email,
        )
        format_response({"status": "success", "change": data}, root="show_result")
        return

    print_data(f"{change.number}: {change.subject}")
    print_table(
        ["Field", "Value"],
        [
            ["Project", change.project],
            ["Branch", change.branch],
            ["Status", change.status.value],
            ["Owner", change.owner.display_name],
            ["Change-Id", change.change_id],
            ["Created", change.created],
            ["Updated", change.updated],
            ["Size", f"+{change.insertions} -{change.deletions}"],
        ],
    )


def mine_command(ctx: typer.Context) -> None:
    """List your open changes.

    Example::

        ger mine
        ger --json mine
    """
    with open_client(ctx) as client:
        changes = client.list_changes(MINE_QUERY)
    emit_changes(changes, "No open changes found", "My changes", root="mine_result")


def incoming_command(ctx: typer.Context) -> None:
    """List open changes that wait for your review.

    Example::

        ger incoming
    """
    with open_client(ctx) as client:
        changes = client.list_changes(INCOMING_QUERY)
    emit_changes(
        changes, "No incoming reviews found", "Incoming reviews", root="incoming_result"
    )


def comment_command(
    ctx: typer.Context,
    change_id: str = typer.Argument(help="Change number, Change-Id, or full id."),
    message: str = typer.Option(..., "--message", "-m", help="Review message to post."),
) -> None:
    """Post a review message on the current revision of a change.

    Example::

        ger comment 12345 -m "Looks good, one nit inline."
    """
    with open_client(ctx) as client:
        client.post_review(change_id, ReviewInput(message=message))
        change = client.get_change(change_id)

    if get_output().is_structured:
        format_response(
            {
                "status": "success",
                "change_id": change_id,
                "change_number": change.number,
                "change_subject": change.subject,
                "change_status": change.status.value,
                "message": message,
            },
            root="comment_result",
        )
        return

    success("Comment posted successfully!")
    print_data(f"Change: {change.subject} ({change.status.value})")
    print_data(f"Message: {message}")


def abandon_command(
    ctx: typer.Context,
    change_id: str = typer.Argument(help="Change number, Change-Id, or full id."),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Reason shown on the change."
    ),
) -> None:
    """Abandon a change.

    Example::

        ger abandon 12345 -m "Superseded by 12399"
    """
    with open_client(ctx) as client:
        change = client.abandon_change(change_id, message)

    if get_output().is_structured:
        format_response(
            {
                "status": "success",
                "change_number": change.number,
                "subject": change.subject,
                "message": message,
            },
            root="abandon_result",
        )
        return

    success(f"Abandoned change {change.number}: {change.subject}")
    if message:
        print_data(f"Message: {message}")


def comments_command(
    ctx: typer.Context,
    change_id: str = typer.Argument(help="Change number, Change-Id, or full id."),
    unresolved_only: bool = typer.Option(
        False, "--unresolved", help="Only show unresolved comments."
    ),
) -> None:
    """List inline comments on a change, grouped by file.

    Example::

        ger comments 12345 --unresolved
    """
    with open_client(ctx) as client:
        comments = client.get_comments(change_id)

    if unresolved_only:
        comments = [c for c in comments if c.unresolved]
    comments.sort(key=lambda c: (c.path or "", c.line or 0, c.updated or ""))

    output = get_output()
    if output.is_structured:
        format_response(
            {
                "status": "success",
                "change_id": change_id,
                "count": len(comments),
                "comments": [
                    {
                        "id": c.id,
                        "path": c.path,
                        "line": c.line,
                        "author": c.author.display_name if c.author else None,
                        "updated": c.updated,
                        "unresolved": c.unresolved,
                        "patch_set": c.patch_set,
                        "message": c.message,
                    }
                    for c in comments
                ],
            },
            root="comments_result",
        )
        return

    if not comments:
        output.info("No comments found")
        return

    print_table(
        ["File", "Line", "Author", "Unresolved", "Message"],
        [
            [
                c.path or "",
                str(c.line) if c.line is not None else "",
                c.author.display_name if c.author else "",
                "yes" if c.unresolved else "",
                c.message,
            ]
            for c in comments
        ],
        title=f"Comments on {change_id}",
    )
