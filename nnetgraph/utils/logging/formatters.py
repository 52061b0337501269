"""Logging formatter implementations for nnetgraph outputs."""

import logging
import os
import sys
import textwrap
from datetime import datetime
from pathlib import Path


class NnetFormatter(logging.Formatter):
    """Single-line formatter with timestamp, level, and source location."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a :class:`logging.LogRecord` into a single-line message.

        Args:
            record (logging.LogRecord): Log record to format.

        Returns:
            str: Formatted log line.

        """
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return (
            f"[{timestamp}] {record.levelname.ljust(8)} "
            f"{record.module}:{record.lineno} | {record.getMessage()}"
        )


class _BannerMixin:
    """Helpers shared by the banner formatters."""

    max_width: int = 88

    def _wrap(self, text: str, *, indent: int = 1) -> list[str]:
        """Wrap `text` to the banner width, keeping explicit newlines and leading space."""
        pad = " " * indent
        width = self.max_width - 2 * indent
        lines: list[str] = []
        for raw in text.split("\n"):
            if not raw.strip():
                lines.append(pad)
                continue
            leading = raw[: len(raw) - len(raw.lstrip())]
            lines.extend(
                pad + leading + part
                for part in textwrap.wrap(raw.strip(), width=width - len(leading))
            )
        return lines

    def _color(self, text: str, *, code: int) -> str:
        """Wrap text in an ANSI color when stdout is a capable terminal."""
        if not sys.stdout.isatty() or os.environ.get("TERM") in (None, "dumb"):
            return text
        return f"\033[{code}m{text}\033[0m"

    def _separator(self, label: str | None = None) -> str:
        """Return a horizontal rule, centred on `label` when given."""
        if not label:
            return "─" * self.max_width
        core = f" {label} "
        left = (self.max_width - len(core)) // 2
        return "─" * left + core + "─" * (self.max_width - left - len(core))


class NnetBannerFormatter(NnetFormatter, _BannerMixin):
    """
    Banner-style formatter for standard nnetgraph logs.

    Records may carry two optional extras:
        - ``title_desc``: appended to the level in the top rule.
        - ``omit_origin``: drop the ``[time] module:line`` line.

    Tabular reports (component timings, graph info) are multi-line messages
    and are kept intact inside the banner.
    """

    def __init__(self, *, max_width: int = 88) -> None:
        super().__init__()
        self.max_width = max_width

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a :class:`logging.LogRecord` into a banner block.

        Args:
            record (logging.LogRecord): Log record to format.

        Returns:
            str: Multi-line banner string.

        """
        custom = getattr(record, "title_desc", None)
        title = f"{record.levelname} - {custom}" if custom else record.levelname

        lines = [self._separator(title)]
        if not getattr(record, "omit_origin", False):
            timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
            lines.extend(self._wrap(f"[{timestamp}] {record.module}:{record.lineno}"))
        lines.extend(self._wrap(record.getMessage()))
        lines.append(self._separator())
        return "\n".join(lines)


class WarningFormatter(NnetFormatter, _BannerMixin):
    """Banner formatter for warnings emitted through :func:`nnetgraph.utils.logging.warn`."""

    def __init__(self, *, max_width: int = 88) -> None:
        super().__init__()
        self.max_width = max_width

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a warning log record.

        The record is expected to carry the ``warning_category``,
        ``warning_filename``, ``warning_lineno``, ``warning_message`` and
        ``warning_hints`` extras set by :func:`warn`.

        Args:
            record (logging.LogRecord): Log record to format.

        Returns:
            str: Banner-rendered warning string.

        """
        category = getattr(record, "warning_category", UserWarning)
        filename = getattr(record, "warning_filename", record.pathname)
        lineno = getattr(record, "warning_lineno", record.lineno)
        message = getattr(record, "warning_message", record.getMessage())
        hints = getattr(record, "warning_hints", None)

        lines = [
            self._color(self._separator(category.__name__), code=31),
            f" Location: {Path(filename).name}:{lineno}",
            "",
        ]
        lines.extend(self._wrap(message))
        if hints:
            lines.append("")
            for hint in [hints] if isinstance(hints, str) else list(hints):
                lines.extend(self._wrap(hint))
        lines.append(self._color(self._separator(), code=31))
        return "\n".join(lines)
