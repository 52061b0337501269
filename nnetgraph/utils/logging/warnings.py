"""Warning emission utilities with consistent nnetgraph formatting."""

from __future__ import annotations

import inspect
import warnings
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

from .logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

_logger = get_logger("warnings")


WarningPayload = dict[str, object]
_WARNING_HOOK: ContextVar[Callable[[WarningPayload], bool] | None] = ContextVar(
    "_WARNING_HOOK",
    default=None,
)


def _caller_location(stacklevel: int) -> tuple[str, int]:
    """Return ``(filename, lineno)`` of the frame `stacklevel` above :func:`warn`."""
    frame = inspect.currentframe()
    try:
        # currentframe -> warn -> caller (+ stacklevel)
        for _ in range(stacklevel + 1):
            if frame is None or frame.f_back is None:
                break
            frame = frame.f_back
        if frame is None:
            return "<unknown>", 0
        return frame.f_code.co_filename, frame.f_lineno
    finally:
        del frame


def warn(
    message: str,
    *,
    category: type[Warning] = UserWarning,
    hints: str | Iterable[str] | None = None,
    stacklevel: int = 1,
) -> None:
    """
    Emit a formatted nnetgraph warning.

    Use this instead of :func:`warnings.warn` inside the package. The
    warning is routed through the ``nnetgraph.warnings`` logger and also
    registered with the stdlib warning machinery (without printing).

    Args:
        message (str): Warning message text.
        category (type[Warning]): Warning category class.
        hints (str | Iterable[str] | None): Optional corrective hints.
        stacklevel (int): Stack level adjustment for locating the call site.

    """
    filename, lineno = _caller_location(stacklevel)
    payload = {
        "category": category,
        "filename": filename,
        "lineno": lineno,
        "message": message,
        "hints": hints,
    }

    hook = _WARNING_HOOK.get()
    if hook is not None and hook(payload):
        return

    _logger.warning(
        message,
        extra={f"warning_{k}": v for k, v in payload.items()},
    )

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category)
        warnings.warn(message, category=category, stacklevel=stacklevel + 2)


@contextmanager
def catch_warnings():
    """
    Capture nnetgraph warnings raised within the current context.

    Captured warnings are not logged.

    Yields:
        WarningInterceptor: Accessor for the captured payloads.

    """
    captured: list[WarningPayload] = []

    def hook(payload: WarningPayload) -> bool:
        captured.append(payload)
        return True

    token = _WARNING_HOOK.set(hook)
    try:
        yield WarningInterceptor(captured)
    finally:
        _WARNING_HOOK.reset(token)


class WarningInterceptor:
    """Read-only view over warnings captured by :func:`catch_warnings`."""

    def __init__(self, captured: list[WarningPayload]):
        self._captured = captured

    def __len__(self) -> int:
        return len(self._captured)

    @property
    def messages(self) -> list[str]:
        """Captured warning messages in emission order."""
        return [str(w["message"]) for w in self._captured]

    def match(self, text: str) -> bool:
        """
        Return True if any captured warning message contains `text`.

        Args:
            text (str): Substring to search within captured messages.

        Returns:
            bool: True if at least one message contains `text`.

        """
        return any(text in m for m in self.messages)
