"""Terminal notifications: unread count in the window title."""

import logging
import re
import sys
from typing import Optional, TextIO

logger = logging.getLogger(__name__)

# Regex to match ANSI escape codes (comprehensive)
ANSI_ESCAPE_RE = re.compile(
    r'\x1b\[[0-9;?]*[a-zA-Z]|'  # CSI sequences (including private modes like ?2026h)
    r'\x1b\][^\x07]*\x07|'       # OSC sequences (title, etc.)
    r'\x1b[PX^_].*?\x1b\\|'      # DCS, SOS, PM, APC sequences
    r'\x1b[\(\)][AB012]|'        # Character set selection
    r'\x1b[=>]|'                 # Keypad modes
    r'\x1b[78]|'                 # Save/restore cursor
    r'\x1b[DMEHc]|'              # Various single-char commands
    r'[\x00-\x08\x0b\x0c\x0e-\x1f]'  # Other control characters
)

DEFAULT_TITLE = "messer"


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes and control characters from text."""
    text = ANSI_ESCAPE_RE.sub('', text)
    # Second pass: remove any remaining escape sequences we might have missed
    return re.sub(r'\x1b[^a-zA-Z]*[a-zA-Z]', '', text)


def format_title(unread_count: int, title: str = DEFAULT_TITLE) -> str:
    if unread_count > 0:
        return f"{title} ({unread_count})"
    return title


class TerminalNotifier:
    """Shows the unread message count in the terminal title."""

    def __init__(self, stream: Optional[TextIO] = None, title: str = DEFAULT_TITLE):
        self.stream = stream or sys.stdout
        self.title = title

    def notify(self, unread_count: int = 0):
        """Set the terminal title; a count of 0 resets it."""
        if not self.stream.isatty():
            return
        try:
            self.stream.write(f"\x1b]0;{format_title(unread_count, self.title)}\x07")
            self.stream.flush()
        except OSError as e:
            logger.debug(f"Could not update terminal title: {e}")
