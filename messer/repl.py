"""Line input/output surface for the interactive loop."""

import logging
from typing import Optional, Protocol

from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.application import get_app_or_none
from prompt_toolkit.shortcuts import clear

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "> "


class LineSurface(Protocol):
    """Reads one line at a time and shows text to the user."""

    async def read_line(self) -> Optional[str]: ...
    def write(self, text: str) -> None: ...
    def clear_pending_input(self) -> None: ...
    def clear_screen(self) -> None: ...


class PromptToolkitSurface:
    """
    prompt_toolkit-backed surface.

    Run read_line() inside prompt_toolkit's patch_stdout() so output written
    while a prompt is open lands above it instead of garbling the input line.
    """

    def __init__(self, prompt: str = DEFAULT_PROMPT, session: Optional[PromptSession] = None):
        self.prompt = prompt
        self.session = session or PromptSession()

    async def read_line(self) -> Optional[str]:
        """Read one line; None on EOF (Ctrl-D)."""
        try:
            return await self.session.prompt_async(self.prompt)
        except EOFError:
            return None
        except KeyboardInterrupt:
            # Ctrl-C drops the current line only
            return ""

    def write(self, text: str):
        if text is None:
            return
        print_formatted_text(text)

    def clear_pending_input(self):
        """Redraw the open prompt below whatever is written next."""
        app = get_app_or_none()
        if app is not None and app.is_running:
            app.invalidate()

    def clear_screen(self):
        clear()
