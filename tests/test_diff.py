"""Tests for diff retrieval and unified-diff rendering."""

from __future__ import annotations

from typing import Optional

import pytest

from ger.diff import UNREADABLE_CONTENT, convert_to_unified_diff, get_diff
from ger.exceptions import AuthError
from ger.models import DiffOptions, FileDiffContent, FileInfo


class FakeClient:
    """Stand-in for GerritClient that records which endpoints were used."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.files = {
            "/COMMIT_MSG": FileInfo(status="A"),
            "src/app.py": FileInfo(lines_inserted=2),
            "logo.png": FileInfo(binary=True),
        }

    def get_files(self, change_id: str, revision: str = "current") -> dict[str, FileInfo]:
        self.calls.append(("files", change_id, revision))
        return self.files

    def get_file_diff(
        self,
        change_id: str,
        path: str,
        revision: str = "current",
        base: Optional[str] = None,
    ) -> FileDiffContent:
        self.calls.append(("diff", change_id, path, revision, base))
        return FileDiffContent.model_validate(
            {"content": [{"ab": ["keep"]}, {"a": ["old"], "b": ["new"]}]}
        )

    def get_file_content(self, change_id: str, path: str, revision: str = "current") -> str:
        self.calls.append(("content", change_id, path, revision))
        if path == "logo.png":
            raise AuthError("HTTP 403")
        return f"contents of {path}"

    def get_patch(self, change_id: str, revision: str = "current") -> str:
        self.calls.append(("patch", change_id, revision))
        return "From 1234\n"


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


# ------------------------------------------------------------------ #
# convert_to_unified_diff
# ------------------------------------------------------------------ #


class TestConvertToUnifiedDiff:
    def test_default_header_and_line_prefixes(self) -> None:
        diff = FileDiffContent.model_validate(
            {
                "content": [
                    {"ab": ["a", "b"]},
                    {"a": ["old"], "b": ["new", "newer"]},
                    {"skip": 40},
                    {"ab": ["z"]},
                ]
            }
        )
        assert convert_to_unified_diff(diff, "f.txt").splitlines() == [
            "--- a/f.txt",
            "+++ b/f.txt",
            " a",
            " b",
            "-old",
            "+new",
            "+newer",
            " z",
        ]

    def test_uses_server_header_when_present(self) -> None:
        diff = FileDiffContent(diff_header=["diff --git a/x b/x", "index 1..2"], content=[])
        assert convert_to_unified_diff(diff, "x") == "diff --git a/x b/x\nindex 1..2"


# ------------------------------------------------------------------ #
# get_diff
# ------------------------------------------------------------------ #


class TestGetDiff:
    def test_default_is_current_patch(self, client: FakeClient) -> None:
        assert get_diff(client, "42", DiffOptions()) == "From 1234\n"
        assert client.calls == [("patch", "42", "current")]

    def test_patchset_selects_revision(self, client: FakeClient) -> None:
        get_diff(client, "42", DiffOptions(patchset=3))
        assert client.calls == [("patch", "42", "3")]

    def test_files_format_lists_paths(self, client: FakeClient) -> None:
        result = get_diff(client, "42", DiffOptions(format="files"))
        assert result == ["/COMMIT_MSG", "src/app.py", "logo.png"]

    def test_single_file_unified(self, client: FakeClient) -> None:
        result = get_diff(client, "42", DiffOptions(file="src/app.py", base=1))
        assert result.startswith("--- a/src/app.py")
        assert client.calls == [("diff", "42", "src/app.py", "current", "1")]

    def test_single_file_json(self, client: FakeClient) -> None:
        result = get_diff(client, "42", DiffOptions(format="json", file="src/app.py"))
        assert result["content"][1] == {"a": ["old"], "b": ["new"]}

    def test_json_without_file_returns_file_map(self, client: FakeClient) -> None:
        result = get_diff(client, "42", DiffOptions(format="json"))
        assert set(result) == {"/COMMIT_MSG", "src/app.py", "logo.png"}
        assert result["src/app.py"]["lines_inserted"] == 2

    def test_full_files_skips_magic_entries(self, client: FakeClient) -> None:
        result = get_diff(client, "42", DiffOptions(format="json", full_files=True))
        assert result == {
            "src/app.py": "contents of src/app.py",
            "logo.png": UNREADABLE_CONTENT,
        }

    def test_full_files_as_text(self, client: FakeClient) -> None:
        result = get_diff(client, "42", DiffOptions(full_files=True))
        assert "=== src/app.py ===\ncontents of src/app.py\n" in result
        assert "/COMMIT_MSG" not in result
