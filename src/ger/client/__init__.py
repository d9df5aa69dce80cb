"""HTTP client for the Gerrit REST API."""

from ger.client.gerrit import GerritClient, strip_xssi_prefix

__all__ = ["GerritClient", "strip_xssi_prefix"]
