"""Init and status commands -- set up and verify the Gerrit connection.

``ger init`` asks for the server URL, username, and HTTP password,
checks them against ``/a/accounts/self``, and stores them with
:class:`~ger.credentials.CredentialStore`. Nothing is saved when the
server rejects the credentials.

``ger status`` reports which server is configured and whether it accepts
the stored credentials.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from ger.client import GerritClient
from ger.credentials import CredentialStore, resolve_credentials
from ger.exceptions import AuthError, InvalidUsageError
from ger.exit_codes import EXIT_CONNECTION_ERROR
from ger.models import GerritCredentials
from ger.output import format_response, get_output, info, success, suggest


def init_command(
    ctx: typer.Context,
    host: str = typer.Option(
        ..., "--host", prompt="Gerrit host URL", help="Gerrit server URL."
    ),
    username: str = typer.Option(
        ..., "--username", "-u", prompt="Username", help="Gerrit username."
    ),
    password: str = typer.Option(
        ...,
        "--password",
        prompt="HTTP password",
        hide_input=True,
        help="HTTP password from Gerrit's settings page.",
    ),
    skip_verify: bool = typer.Option(
        False, "--skip-verify", help="Save without testing the connection."
    ),
) -> None:
    """Configure Gerrit credentials.

    Example::

        ger init
        ger init --host https://review.example.com -u alice --password s3cret
    """
    try:
        credentials = GerritCredentials(host=host, username=username, password=password)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise InvalidUsageError(f"Invalid {field}: {first['msg']}") from None

    if not skip_verify:
        info(f"Testing connection to {credentials.host}...")
        transport = ctx.obj.get("transport") if ctx.obj else None
        with GerritClient(credentials, transport=transport) as client:
            if not client.test_connection():
                raise AuthError(
                    f"Could not authenticate with {credentials.host}. "
                    "Credentials were not saved."
                )
        success("Successfully connected to Gerrit")

    store = CredentialStore()
    store.save(credentials)
    success(f"Credentials saved to {store.path}")
    suggest("Try: ger mine")


def status_command(ctx: typer.Context) -> None:
    """Check the connection to the configured Gerrit server.

    Exits with code 6 when the server cannot be reached or rejects the
    credentials.

    Example::

        ger status
        ger --xml status
    """
    credentials = resolve_credentials()
    transport = ctx.obj.get("transport") if ctx.obj else None
    with GerritClient(credentials, transport=transport) as client:
        connected = client.test_connection()

    if get_output().is_structured:
        format_response(
            {
                "host": credentials.host,
                "username": credentials.username,
                "connected": connected,
            },
            root="status_result",
        )
    elif connected:
        success(f"Connected to {credentials.host} as {credentials.username}")
    else:
        get_output().error(f"Failed to connect to {credentials.host}")
        suggest("Check your credentials and network connection, or run: ger init")

    if not connected:
        raise typer.Exit(code=EXIT_CONNECTION_ERROR)
