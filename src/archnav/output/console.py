"""Rich Console factory and theme for archnav output.

Consoles render into a StringIO buffer so every renderer keeps the
``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich drops color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

NAV_THEME = Theme(
    {
        "nav.ok": "bold green",
        "nav.error": "bold red",
        "nav.warning": "bold yellow",
        "nav.op": "bold cyan",
        "nav.key": "dim",
        "nav.id": "bold blue",
        "nav.name": "bold",
        "nav.score": "magenta",
        "nav.category.compute": "green",
        "nav.category.storage": "blue",
        "nav.category.channel": "yellow",
        "nav.category.meta": "cyan",
    }
)

_TYPE_STYLES: dict[str, str] = {
    "service": "nav.category.compute",
    "api_endpoint": "nav.category.compute",
    "function": "nav.category.compute",
    "database": "nav.category.storage",
    "db_table": "nav.category.storage",
    "db_view": "nav.category.storage",
    "cache_instance": "nav.category.storage",
    "cache_key": "nav.category.storage",
    "message_broker": "nav.category.channel",
    "topic": "nav.category.channel",
    "queue": "nav.category.channel",
    "domain": "nav.category.meta",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=NAV_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_type(object_type: str | None) -> str:
    """Rich style name for an object type (empty when unknown)."""
    return _TYPE_STYLES.get(object_type or "", "")
