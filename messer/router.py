"""Routes raw input lines to command handlers."""

import logging
from typing import Optional

from .command_registry import CommandRegistry
from .errors import InvalidCommandError, MesserError
from .models import CommandContext
from .notifier import TerminalNotifier

logger = logging.getLogger(__name__)

SEND_COMMAND = "message"
UNLOCK_COMMAND = "unlock"
DELETE_COMMAND = "delete"


class CommandRouter:
    """
    Turns one input line into one handler invocation.

    While a thread lock is held every line except "unlock" becomes a message
    to the locked thread. In anonymous lock mode each such message is deleted
    again right after it was sent.
    """

    def __init__(
        self,
        ctx: CommandContext,
        registry: CommandRegistry,
        notifier: Optional[TerminalNotifier] = None,
    ):
        self.ctx = ctx
        self.registry = registry
        self.notifier = notifier

    async def process_command(self, raw_command: str) -> Optional[str]:
        """
        Execute the action for one line of user input.

        Args:
            raw_command: The line as typed

        Returns:
            Text to show the user, or None

        Raises:
            InvalidCommandError: If the line is not a command and no lock is held
            MesserError: Whatever the resolved handler raises
        """
        # Typing means pending messages have been read
        if self.ctx.session.clear_unread() and self.notifier:
            self.notifier.notify(0)

        command = raw_command.strip()
        if not command:
            return None

        tokens = command.split()
        handler = self.registry.resolve(tokens[0])

        lock = self.ctx.lock
        locked_target = None
        if lock.is_locked():
            if command == UNLOCK_COMMAND:
                handler = self.registry.resolve(UNLOCK_COMMAND)
            else:
                # The whole line is the message body; runs of spaces collapse to one
                locked_target = lock.get_locked_target()
                handler = self.registry.resolve(SEND_COMMAND)
                command = f'{SEND_COMMAND} "{locked_target}" {" ".join(tokens)}'

        if handler is None:
            raise InvalidCommandError()

        logger.debug(f"Routing {tokens[0]!r} (locked_target={locked_target})")
        result = await handler(command, self.ctx)

        if locked_target is not None and lock.is_locked() and lock.is_anonymous():
            await self._retract_last_message(locked_target)

        return result

    async def handle_line(self, raw_command: str) -> Optional[str]:
        """Like process_command, but user-facing errors come back as text."""
        try:
            return await self.process_command(raw_command)
        except MesserError as e:
            logger.info(f"Command failed: {e}")
            return str(e)

    async def _retract_last_message(self, target: str):
        """Delete the message just sent in anonymous mode. Never raises."""
        handler = self.registry.resolve(DELETE_COMMAND)
        if handler is None:
            logger.warning("No delete command registered; anonymous message left in place")
            return
        try:
            await handler(f'{DELETE_COMMAND} "{target}" 1', self.ctx)
        except Exception as e:
            # The send already succeeded; its result stands
            logger.warning(f"Failed to delete anonymous message in thread {target}: {e}")
            self.ctx.write(f"Warning: could not delete the last message sent to {target}")
