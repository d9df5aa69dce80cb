"""Terminal output for ger: data on stdout, everything else on stderr.

Command results (change tables, diffs, JSON and XML documents) are the only
thing written to stdout, so ``ger mine --json | jq`` and friends always see
clean data. Progress notes, warnings, errors and hints go to stderr.

Formats:

* ``rich`` -- tables and highlighted JSON, chosen automatically for an
  interactive terminal with colour enabled.
* ``plain`` -- tab-separated text, chosen automatically when piped.
* ``json`` -- indented JSON documents.
* ``xml`` -- a small XML document per command (``<show_result>``,
  ``<mine_result>``...) with free text in CDATA, meant for LLM tooling.

Colour is off when ``NO_COLOR`` is set, ``TERM=dumb``, or ``--no-color``
is passed.

:func:`~ger.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`; commands then call the
module-level helpers (:func:`info`, :func:`format_response`...).
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from enum import Enum
from typing import Any, Optional
from xml.sax.saxutils import escape

from rich.console import Console
from rich.markup import escape as escape_markup
from rich.syntax import Syntax
from rich.table import Table

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_DEFAULT_PAGER = "less -FIRX"

# Free-text fields rendered as CDATA in XML output.
_CDATA_FIELDS = frozenset({"subject", "message", "content", "diff", "patch", "text"})

# kind -> (plain prefix, Rich template, hidden by --quiet, needs --verbose)
_DIAGNOSTICS: dict[str, tuple[str, str, bool, bool]] = {
    "info": ("", "{}", True, False),
    "success": ("", "[green]{}[/green]", True, False),
    "suggest": ("→ ", "[dim]→ {}[/dim]", True, False),
    "warning": ("Warning: ", "[yellow]Warning:[/yellow] {}", False, False),
    "error": ("Error: ", "[bold red]Error:[/bold red] {}", False, False),
    "debug": ("[debug] ", "[dim]\\[debug] {}[/dim]", False, True),
}


class OutputFormat(str, Enum):
    """Output formats selectable with ``--json``/``--xml``/``--plain`` or config.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"
    XML = "xml"


class OutputManager:
    """Routes command results to stdout and diagnostics to stderr.

    Args:
        format: Requested format; ``AUTO`` is resolved immediately.
        no_color: Disable colour and Rich markup.
        quiet: Hide info, success and suggestion lines.
        verbose: Show debug lines.
        use_pager: Send :meth:`paged_output` through ``$PAGER`` on a TTY.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        use_pager: bool = True,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._use_pager = use_pager
        self._format = _resolve_format(format, self._no_color)

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_structured(self) -> bool:
        """True for JSON and XML, where commands emit one document instead of prose."""
        return self._format in (OutputFormat.JSON, OutputFormat.XML)

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any, root: str = "result") -> None:
        """Write *data* to stdout in the active format.

        Args:
            data: A dict, list, or scalar.
            root: Name of the XML root element; other formats ignore it.
        """
        if self._format == OutputFormat.XML:
            self.print_data(render_xml(data, root))
        elif self._format == OutputFormat.JSON:
            self.print_data(data if isinstance(data, str) else _to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data), markup=False, highlight=False)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows as a Rich table, TSV, a JSON array, or ``<rows>`` XML.

        The title is only shown by the Rich table.
        """
        if self._format == OutputFormat.RICH:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)
            return

        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return

        records = [dict(zip(headers, row)) for row in rows]
        if self._format == OutputFormat.XML:
            self.print_data(render_xml(records, "rows"))
        else:
            self.print_data(_to_json(records))

    def paged_output(self, text: str) -> None:
        """Show long text through ``$PAGER`` (default ``less -FIRX``) on a TTY.

        Piped output, a disabled pager, or a pager that cannot be started
        all fall back to plain stdout.
        """
        if self._use_pager and _is_tty():
            command = os.environ.get("PAGER") or _DEFAULT_PAGER
            try:
                pager = subprocess.Popen(
                    command, shell=True, stdin=subprocess.PIPE, encoding="utf-8"
                )
            except OSError:
                self.debug(f"Could not start pager {command!r}")
            else:
                pager.communicate(input=text)
                return
        self.print_data(text)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        self._diagnose("info", message)

    def success(self, message: str) -> None:
        self._diagnose("success", message)

    def suggest(self, message: str) -> None:
        """Print a next-step hint such as ``→ Try: ger mine``."""
        self._diagnose("suggest", message)

    def warning(self, message: str) -> None:
        """Print a warning; shown even with ``--quiet``."""
        self._diagnose("warning", message)

    def error(self, message: str) -> None:
        """Print an error; shown even with ``--quiet``."""
        self._diagnose("error", message)

    def debug(self, message: str) -> None:
        """Print a debug line; only with ``--verbose``."""
        self._diagnose("debug", message)

    def _diagnose(self, kind: str, message: str) -> None:
        prefix, template, quietable, verbose_only = _DIAGNOSTICS[kind]
        if (quietable and self._quiet) or (verbose_only and not self._verbose):
            return
        if self._no_color:
            print(prefix + message, file=sys.stderr, flush=True)
        else:
            self._stderr.print(template.format(escape_markup(message)))


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _plain_lines(data: Any) -> list[str]:
    """Dicts become ``key<TAB>value`` lines, lists one line per item."""
    if isinstance(data, dict):
        return [f"{key}\t{_plain_value(value)}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(_plain_value(v) for v in item.values())
            if isinstance(item, dict)
            else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# XML rendering
# ------------------------------------------------------------------ #


def _cdata(text: str) -> str:
    """Wrap *text* in CDATA, splitting any embedded terminator."""
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _singular(name: str) -> str:
    return name[:-1] if len(name) > 1 and name.endswith("s") else "item"


def _xml_scalar(key: str, value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if key in _CDATA_FIELDS:
        return _cdata(text)
    return escape(text)


def _xml_lines(key: str, value: Any, indent: int) -> list[str]:
    pad = "  " * indent
    if value is None:
        return []
    if isinstance(value, (dict, list)):
        if isinstance(value, dict):
            children = list(value.items())
        else:
            children = [(_singular(key), item) for item in value]
        lines = [f"{pad}<{key}>"]
        for child_key, child_value in children:
            lines.extend(_xml_lines(child_key, child_value, indent + 1))
        lines.append(f"{pad}</{key}>")
        return lines
    return [f"{pad}<{key}>{_xml_scalar(key, value)}</{key}>"]


def render_xml(data: Any, root: str = "result") -> str:
    """Render *data* as an XML document string.

    Dict keys become child elements and ``None`` values are omitted. A list
    becomes a wrapper element whose children take the singular of its name
    (``changes`` holds ``change`` elements). Fields named ``subject``,
    ``message``, ``content``, ``diff``, ``patch`` or ``text`` are wrapped
    in CDATA.

    Example::

        >>> print(render_xml({"status": "success", "message": "a < b"}, "comment_result"))
        <?xml version="1.0" encoding="UTF-8"?>
        <comment_result>
          <status>success</status>
          <message><![CDATA[a < b]]></message>
        </comment_result>
    """
    if isinstance(data, (dict, list)):
        body = _xml_lines(root, data, 0)
    else:
        body = [f"<{root}>{_xml_scalar(root, data)}</{root}>"]
    return "\n".join([XML_DECLARATION, *body])


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating an ``AUTO`` one if needed."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests swap stdout between runs)."""
    global _output
    _output = None


# Shortcuts over get_output().


def format_response(data: Any, root: str = "result") -> None:
    get_output().format_response(data, root)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def paged_output(text: str) -> None:
    get_output().paged_output(text)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
