"""Unit tests for EventDispatcher."""

import asyncio

import pytest

from messer.errors import EventParseError
from messer.event_dispatcher import EventDispatcher
from messer.models import MessageEvent, ThreadEvent, ThreadEventKind


@pytest.fixture
def dispatcher(session, mock_notifier, surface):
    session.surface = surface
    return EventDispatcher(session, mock_notifier, me_id="1")


class TestMessageEvents:

    def test_incoming_increments_unread(self, dispatcher, session, mock_notifier):
        dispatcher.dispatch(MessageEvent(thread_id="42", sender_id="2", body="hi"))
        assert session.unread_count == 1
        assert session.last_thread == "42"
        mock_notifier.notify.assert_called_once_with(1)

    def test_self_authored_does_not_count(self, dispatcher, session, mock_notifier):
        dispatcher.dispatch(MessageEvent(thread_id="77", sender_id="1", body="me", self_authored=True))
        assert session.unread_count == 0
        assert session.last_thread == "77"
        mock_notifier.notify.assert_not_called()

    def test_out_of_order_delivery_only_overwrites(self, dispatcher, session):
        dispatcher.dispatch(MessageEvent(thread_id="77", sender_id="3", body="later"))
        dispatcher.dispatch(MessageEvent(thread_id="42", sender_id="2", body="earlier"))
        assert session.unread_count == 2
        assert session.last_thread == "42"

    def test_message_is_shown(self, dispatcher, surface):
        dispatcher.dispatch(MessageEvent(
            thread_id="77", sender_id="2", sender_name="Bob", thread_name="Book Club", body="hi",
        ))
        assert surface.written == ["[Book Club] Bob: hi"]
        assert surface.pending_cleared == 1

    def test_direct_message_omits_thread(self, dispatcher, surface):
        dispatcher.dispatch(MessageEvent(
            thread_id="42", sender_id="2", sender_name="Bob", thread_name="Bob", body="hi",
        ))
        assert surface.written == ["Bob: hi"]

    def test_escape_sequences_stripped(self, dispatcher, surface):
        dispatcher.dispatch(MessageEvent(thread_id="42", sender_id="2", body="\x1b]0;pwned\x07hi"))
        assert surface.written == ["[42] 2: hi"]

    def test_no_surface_still_updates_state(self, session, mock_notifier):
        dispatcher = EventDispatcher(session, mock_notifier)
        dispatcher.dispatch(MessageEvent(thread_id="42", sender_id="2", body="hi"))
        assert session.unread_count == 1


class TestThreadEvents:

    def test_thread_event_updates_last_thread_only(self, dispatcher, session, mock_notifier):
        session.unread_count = 2
        dispatcher.dispatch(ThreadEvent(kind=ThreadEventKind.RENAMED, thread_id="77"))
        assert session.last_thread == "77"
        assert session.unread_count == 2
        mock_notifier.notify.assert_not_called()

    def test_typing_does_not_move_last_thread(self, dispatcher, session):
        session.last_thread = "42"
        dispatcher.dispatch(ThreadEvent(kind=ThreadEventKind.TYPING, thread_id="77"))
        assert session.last_thread == "42"

    def test_description_is_shown(self, dispatcher, surface):
        dispatcher.dispatch(ThreadEvent(
            kind=ThreadEventKind.RENAMED, thread_id="77", description="Bob named the group Book Club",
        ))
        assert surface.written == ["[77] Bob named the group Book Club"]


class TestRawPayloads:

    def test_dict_payload_is_parsed(self, dispatcher, session):
        dispatcher.dispatch({"type": "message", "thread_id": "42", "sender_id": "1", "body": "echo"})
        # sender 1 is us
        assert session.unread_count == 0
        assert session.last_thread == "42"

    def test_unknown_payload_raises(self, dispatcher):
        with pytest.raises(EventParseError):
            dispatcher.dispatch({"type": "presence"})


class TestChannel:

    @pytest.mark.asyncio
    async def test_run_drains_channel_and_skips_bad_events(self, dispatcher, session):
        await dispatcher.start()
        dispatcher.publish({"type": "bogus"})
        dispatcher.publish(MessageEvent(thread_id="42", sender_id="2", body="hi"))
        dispatcher.publish({"type": "message", "thread_id": "77", "sender_id": "3", "body": "yo"})
        await asyncio.wait_for(dispatcher.channel.join(), timeout=1)
        await dispatcher.stop()

        assert session.unread_count == 2
        assert session.last_thread == "77"

    @pytest.mark.asyncio
    async def test_stop_without_start(self, dispatcher):
        await dispatcher.stop()
