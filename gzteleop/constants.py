from __future__ import annotations

import logging
import os

# Project documentation shown behind the "?" button
GZTELEOP_DOC_URL = "https://gazebosim.org/docs/latest/web_visualization"

# Webserver bind (NiceGUI host/port)
SERVER_HOST: str = os.getenv("GZTELEOP_SERVER_IP", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("GZTELEOP_SERVER_PORT", "8080"))

# Connection status values shown in the UI
STATUS_CONNECTED = "connected"
STATUS_DISCONNECTED = "disconnected"

# Key that cancels camera follow
ESCAPE_KEY = "Escape"

# How often the page pulls the model list into its table
MODEL_TABLE_REFRESH_S: float = 0.5


def _resolve_log_level() -> int:
    s = os.getenv("GZTELEOP_LOG_LEVEL")
    if s:
        name = s.strip().upper()
        mapping = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return mapping.get(name, logging.WARNING)
    else:
        return logging.WARNING


LOG_LEVEL: int = _resolve_log_level()
