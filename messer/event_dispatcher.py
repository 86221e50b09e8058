"""Applies events pushed by the messaging backend to the session."""

import asyncio
import logging
from typing import Optional, Union

from .errors import EventParseError
from .models import InboundEvent, MessageEvent, Session, ThreadEvent, parse_event
from .notifier import TerminalNotifier, strip_ansi

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Consumes inbound events from a channel and updates session state.

    The messaging client pushes into the channel through publish(); a single
    task drains it. Handlers only increment or overwrite session fields and
    never touch the lock store, so they can interleave freely with commands.
    """

    def __init__(
        self,
        session: Session,
        notifier: Optional[TerminalNotifier] = None,
        me_id: Optional[str] = None,
    ):
        self.session = session
        self.notifier = notifier
        self.me_id = me_id
        self.channel: asyncio.Queue = asyncio.Queue()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def publish(self, event: Union[InboundEvent, dict]):
        """Queue an event (or a raw backend payload) for dispatch."""
        self.channel.put_nowait(event)

    async def start(self):
        """Start draining the channel."""
        self._running = True
        self._task = asyncio.create_task(self.run())

    async def stop(self):
        """Stop draining the channel."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run(self):
        """Dispatch events until cancelled."""
        while True:
            try:
                event = await self.channel.get()
            except asyncio.CancelledError:
                logger.info("Event dispatcher cancelled")
                break
            try:
                self.dispatch(event)
            except EventParseError as e:
                logger.warning(f"Dropping event: {e}")
            except Exception as e:
                logger.error(f"Error dispatching event: {e}", exc_info=True)
            finally:
                self.channel.task_done()

    def dispatch(self, event: Union[InboundEvent, dict]):
        """Apply one event to the session."""
        if isinstance(event, dict):
            event = parse_event(event, me_id=self.me_id)

        if isinstance(event, MessageEvent):
            self.on_message(event)
        elif isinstance(event, ThreadEvent):
            self.on_thread_event(event)
        else:
            raise EventParseError(f"Unsupported event: {type(event).__name__}")

    def on_message(self, event: MessageEvent):
        unread = self.session.record_incoming(event.thread_id, event.self_authored)
        logger.debug(
            f"Message in thread {event.thread_id} (self={event.self_authored}), unread={unread}"
        )

        if not event.self_authored and self.notifier:
            self.notifier.notify(unread)

        self._show(self._format_message(event))

    def on_thread_event(self, event: ThreadEvent):
        if event.updates_last_thread:
            self.session.touch_thread(event.thread_id)
        logger.debug(f"Thread event {event.kind.value} in thread {event.thread_id}")

        if event.description:
            self._show(f"[{event.thread_id}] {strip_ansi(event.description)}")

    def _format_message(self, event: MessageEvent) -> str:
        thread = event.thread_name or event.thread_id
        sender = "You" if event.self_authored else (event.sender_name or event.sender_id)
        body = strip_ansi(event.body)
        if event.thread_name and event.thread_name == event.sender_name:
            return f"{sender}: {body}"
        return f"[{thread}] {sender}: {body}"

    def _show(self, text: str):
        surface = self.session.surface
        if surface is None:
            return
        surface.clear_pending_input()
        surface.write(text)
