from __future__ import annotations

import logging
import os
import sys
import threading
import weakref

_LEVEL_COLORS = {
    "TRACE": "\033[32m",  # green
    "DEBUG": "\033[36m",  # cyan
    "INFO": "\033[37m",  # light gray
    "WARNING": "\033[33m",  # yellow
    "ERROR": "\033[31m",  # red
    "CRITICAL": "\033[41m",  # red background
}
_RESET = "\033[0m"
_DIM = "\033[2m"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Per-keystroke logging stays off unless explicitly requested
TRACE_ENABLED = str(os.getenv("GZTELEOP_TRACE", "0")).lower() in ("1", "true", "yes", "on")


def trace(msg: str, *args) -> None:
    """Root-logger TRACE shortcut, free when GZTELEOP_TRACE is off."""
    if TRACE_ENABLED:
        logging.log(TRACE, msg, *args)


class AnsiColorFormatter(logging.Formatter):
    """Compact `HH:MM:SS LEVEL name: msg` lines, colored on a TTY."""

    def __init__(self, colored: bool = True) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
        )
        self.colored = colored and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self.colored:
            return line
        ts, sep, rest = line.partition(" ")
        if not sep:
            return line
        level = record.levelname.upper()
        color = _LEVEL_COLORS.get(level)
        if color:
            rest = rest.replace(level, f"{color}{level}{_RESET}", 1)
        return f"{_DIM}{ts}{_RESET} {rest}"


# ---- NiceGUI ui.log sink ----

_ui_log_targets: set[weakref.ref] = set()
_ui_lock = threading.Lock()


class NiceGuiLogHandler(logging.Handler):
    """Mirror log records into every registered `ui.log` widget."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S")
        )

    def emit(self, record: logging.LogRecord) -> None:
        if not _ui_log_targets:
            return
        msg = self.format(record)
        with _ui_lock:
            for ref in list(_ui_log_targets):
                widget = ref()
                if widget is None:
                    _ui_log_targets.discard(ref)
                    continue
                try:
                    widget.push(msg)
                except Exception:
                    # Page already torn down
                    _ui_log_targets.discard(ref)


def attach_ui_log(log_widget) -> None:
    """Register a ui.log widget as a sink for log records."""
    try:
        ref = weakref.ref(log_widget)
    except TypeError:
        return
    with _ui_lock:
        _ui_log_targets.add(ref)


def detach_ui_log(log_widget) -> None:
    try:
        ref = weakref.ref(log_widget)
    except TypeError:
        return
    with _ui_lock:
        _ui_log_targets.discard(ref)


def configure_logging(
    level: int = logging.INFO, use_color: bool = True, add_ui_handler: bool = True
) -> logging.Logger:
    """
    Configure the root logger once:
      - colored stderr handler
      - optional NiceGUI handler feeding the page log panel
    Calling it again only updates the level.
    """
    global TRACE_ENABLED
    logger = logging.getLogger()
    logger.setLevel(level)
    if level <= TRACE:
        TRACE_ENABLED = True

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        console = logging.StreamHandler(stream=sys.stderr)
        console.setLevel(level)
        console.setFormatter(AnsiColorFormatter(colored=use_color))
        logger.addHandler(console)

    if add_ui_handler and not any(isinstance(h, NiceGuiLogHandler) for h in logger.handlers):
        logger.addHandler(NiceGuiLogHandler(level=max(level, logging.INFO)))

    return logger
