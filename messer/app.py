"""Session lifecycle - wires all components together."""

import contextlib
import logging
import sys
import traceback
from typing import Optional, TextIO

from prompt_toolkit.patch_stdout import patch_stdout

from .command_registry import CommandRegistry
from .config import get_api_url
from .credentials import prompt_credentials, prompt_mfa_code
from .errors import LifecycleError, LoginError, MesserError, MessagingError, TransportError
from .event_dispatcher import EventDispatcher
from .handlers import build_default_registry
from .lock_manager import LockStore
from .messaging_client import API_TIMEOUT, HttpMessagingClient
from .models import CommandContext, LifecycleState, Session
from .notifier import TerminalNotifier
from .repl import DEFAULT_PROMPT, PromptToolkitSurface
from .router import CommandRouter

logger = logging.getLogger(__name__)

_FINISHED = (LifecycleState.TERMINATING, LifecycleState.TERMINATED)


class MesserApp:
    """
    Owns the Session and drives it through its lifecycle.

    UNAUTHENTICATED -> AUTHENTICATING -> LISTENING -> INTERACTIVE
    -> TERMINATING -> TERMINATED. Single-command mode goes straight from
    AUTHENTICATING to running one line.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        debug: bool = False,
        client=None,
        surface=None,
        notifier: Optional[TerminalNotifier] = None,
        registry: Optional[CommandRegistry] = None,
        credentials_prompt=prompt_credentials,
        mfa_prompt=prompt_mfa_code,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        self.config = config or {}
        self.state = LifecycleState.UNAUTHENTICATED
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

        api_config = self.config.get("api", {})
        self.client = client or HttpMessagingClient(
            api_url=get_api_url(self.config),
            timeout=api_config.get("timeout", API_TIMEOUT),
        )
        self.credentials_prompt = credentials_prompt
        self.mfa_prompt = mfa_prompt

        self.session = Session(debug=debug or bool(self.config.get("debug", False)))
        self.lock = LockStore()
        self.notifier = notifier or TerminalNotifier(stream=self.stdout)
        self.registry = registry or build_default_registry()
        self.ctx = CommandContext(
            session=self.session,
            lock=self.lock,
            client=self.client,
            registry=self.registry,
            logout=self.logout,
            default_history_count=self.config.get("history", {}).get("default_count", 5),
            default_recent_count=self.config.get("recent", {}).get("default_count", 5),
        )
        self.router = CommandRouter(self.ctx, self.registry, self.notifier)
        self.dispatcher = EventDispatcher(self.session, self.notifier)
        self._surface = surface

    def _transition(self, new_state: LifecycleState):
        logger.debug(f"Lifecycle {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _print(self, text: str, stream: Optional[TextIO] = None):
        stream = stream or self.stdout
        stream.write(text + "\n")
        stream.flush()

    async def _login(self) -> bool:
        """Authenticate once. On failure the session is over."""
        if self.state != LifecycleState.UNAUTHENTICATED:
            raise LifecycleError(f"Cannot log in from state {self.state.value}")
        self._transition(LifecycleState.AUTHENTICATING)

        try:
            me = await self.client.login(self.credentials_prompt, self.mfa_prompt)
        except LoginError as e:
            logger.error(str(e))
            self._print(str(e), self.stderr)
            await self.client.close()
            self._transition(LifecycleState.TERMINATED)
            return False

        self.dispatcher.me_id = me.id
        return True

    async def start(self) -> int:
        """
        Run an interactive session until logout or EOF.

        Returns:
            Exit code: 0 after a normal session, 1 if login failed
        """
        self.notifier.notify(0)
        self._print("Logging in...")
        if not await self._login():
            return 1
        self._print(f"Successfully logged in as {self.client.me.name}")

        self._transition(LifecycleState.LISTENING)
        await self.dispatcher.start()
        await self.client.listen(self.dispatcher.publish)

        await self._interactive_loop()
        return 0

    async def _interactive_loop(self):
        self._transition(LifecycleState.INTERACTIVE)
        surface = self._surface or PromptToolkitSurface(
            prompt=self.config.get("repl", {}).get("prompt", DEFAULT_PROMPT)
        )
        self.session.surface = surface

        redirect = patch_stdout() if isinstance(surface, PromptToolkitSurface) else contextlib.nullcontext()
        try:
            with redirect:
                while self.state not in _FINISHED:
                    line = await surface.read_line()
                    if line is None:
                        break
                    result = await self._run_line(line)
                    if result:
                        surface.write(result)
        finally:
            self.session.surface = None
            if self.state not in _FINISHED:
                await self.logout()

    async def _run_line(self, line: str) -> Optional[str]:
        try:
            return await self.router.handle_line(line)
        except Exception as e:
            # Keep the session alive; the traceback goes to the log
            logger.error(f"Unexpected error running {line!r}: {e}", exc_info=True)
            if self.session.debug:
                return traceback.format_exc()
            return f"Error: {e}"

    async def start_single(self, raw_command: str) -> int:
        """
        Log in, run exactly one command, print its result and finish.

        Returns:
            Exit code: 1 on login or transport failure, else 0
        """
        if not await self._login():
            return 1

        exit_code = 0
        try:
            output = await self.router.process_command(raw_command)
            if output:
                self._print(output)
        except TransportError as e:
            self._print(str(e), self.stderr)
            exit_code = 1
        except MesserError as e:
            self._print(str(e), self.stderr)
        finally:
            if self.state not in _FINISHED:
                await self.logout()
        return exit_code

    async def logout(self):
        """
        Close the messaging session and tear everything down.

        Raises:
            LifecycleError: If already terminating or terminated
        """
        if self.state in _FINISHED:
            raise LifecycleError(f"Cannot log out from state {self.state.value}")
        self._transition(LifecycleState.TERMINATING)

        await self.dispatcher.stop()
        try:
            await self.client.logout()
        except MessagingError as e:
            logger.warning(f"Logout request failed: {e}")
        finally:
            await self.client.close()
            self.lock.clear_lock()
            self._transition(LifecycleState.TERMINATED)
        logger.info("Session terminated")
