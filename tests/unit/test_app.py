"""Unit tests for the MesserApp session lifecycle."""

import io
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from messer.app import MesserApp
from messer.errors import LifecycleError, LoginError, TransportError
from messer.messaging_client import HttpMessagingClient
from messer.models import LifecycleState


@pytest.fixture
def stdout():
    return io.StringIO()


@pytest.fixture
def stderr():
    return io.StringIO()


@pytest.fixture
def app(mock_client, surface, stdout, stderr):
    return MesserApp(
        config={},
        client=mock_client,
        surface=surface,
        credentials_prompt=AsyncMock(return_value=("a", "b")),
        mfa_prompt=AsyncMock(return_value="1"),
        stdout=stdout,
        stderr=stderr,
    )


class TestInteractive:

    @pytest.mark.asyncio
    async def test_runs_lines_then_logs_out_on_eof(self, app, surface, mock_client, stdout):
        surface.lines = ['m "Bob Smith" hi', "frobnicate", "  "]
        states = []
        original = app._transition
        app._transition = lambda state: (states.append(state), original(state))

        exit_code = await app.start()

        assert exit_code == 0
        assert states == [
            LifecycleState.AUTHENTICATING,
            LifecycleState.LISTENING,
            LifecycleState.INTERACTIVE,
            LifecycleState.TERMINATING,
            LifecycleState.TERMINATED,
        ]
        mock_client.send_message.assert_awaited_once_with("42", "hi")
        mock_client.listen.assert_awaited_once_with(app.dispatcher.publish)
        mock_client.logout.assert_awaited_once()
        mock_client.close.assert_awaited_once()
        assert "Successfully logged in as Alice" in stdout.getvalue()

    @pytest.mark.asyncio
    async def test_errors_are_shown_and_session_continues(self, app, surface):
        surface.lines = ["frobnicate", 'm "Nobody" hi', "recent 1"]

        await app.start()

        assert surface.written[0] == "Invalid command - check your syntax"
        assert surface.written[1] == "No thread found for 'Nobody'"
        assert surface.written[2].startswith("[0] ")

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported(self, app, surface, mock_client):
        mock_client.recent_threads.side_effect = RuntimeError("kaboom")
        surface.lines = ["recent", "recent"]

        await app.start()

        assert surface.written == ["Error: kaboom", "Error: kaboom"]
        assert app.state == LifecycleState.TERMINATED

    @pytest.mark.asyncio
    async def test_logout_command_ends_loop(self, app, surface, mock_client):
        surface.lines = ["logout", "recent"]

        await app.start()

        assert app.state == LifecycleState.TERMINATED
        mock_client.recent_threads.assert_not_called()
        mock_client.logout.assert_awaited_once()
        # Remaining line is never read
        assert surface.lines == ["recent"]

    @pytest.mark.asyncio
    async def test_lock_flow(self, app, surface, mock_client):
        surface.lines = ['lock "Bob Smith" --secret', "psst", "unlock", "recent"]

        await app.start()

        mock_client.send_message.assert_awaited_once_with("42", "psst")
        mock_client.delete_messages.assert_awaited_once_with("42", 1)
        mock_client.recent_threads.assert_awaited_once()
        assert not app.lock.is_locked()

    @pytest.mark.asyncio
    async def test_surface_detached_after_loop(self, app, surface):
        surface.lines = ["help"]
        await app.start()
        assert "message" in surface.written[0]
        assert app.session.surface is None

    @pytest.mark.asyncio
    async def test_login_failure_is_terminal(self, app, mock_client, stderr):
        mock_client.login.side_effect = LoginError("Login failed: Wrong password")

        assert await app.start() == 1

        assert app.state == LifecycleState.TERMINATED
        assert "Wrong password" in stderr.getvalue()
        mock_client.login.assert_awaited_once()
        mock_client.listen.assert_not_called()
        mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_eof_at_login_prompt_is_terminal(self, surface, stdout, stderr):
        """Closed stdin at the credentials prompt ends the session cleanly."""
        client = HttpMessagingClient(
            api_url="http://bridge.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        app = MesserApp(
            config={},
            client=client,
            surface=surface,
            credentials_prompt=AsyncMock(side_effect=EOFError),
            stdout=stdout,
            stderr=stderr,
        )

        with patch.object(client, "close", wraps=client.close) as close:
            assert await app.start() == 1

        assert app.state == LifecycleState.TERMINATED
        assert "no credentials given" in stderr.getvalue()
        close.assert_awaited_once()
        assert client._http.is_closed


class TestSingle:

    @pytest.mark.asyncio
    async def test_single_command_prints_result(self, app, mock_client, stdout):
        assert await app.start_single("recent 2") == 0

        assert stdout.getvalue() == "[0] Bob Smith\n[1] Book Club\n"
        mock_client.listen.assert_not_called()
        assert app.state == LifecycleState.TERMINATED

    @pytest.mark.asyncio
    async def test_single_invalid_command_goes_to_stderr(self, app, stdout, stderr):
        assert await app.start_single("frobnicate") == 0

        assert stderr.getvalue() == "Invalid command - check your syntax\n"
        assert stdout.getvalue() == ""

    @pytest.mark.asyncio
    async def test_single_transport_failure_exits_nonzero(self, app, mock_client, stderr):
        mock_client.recent_threads.side_effect = TransportError("Messaging service unavailable")

        assert await app.start_single("recent") == 1
        assert "unavailable" in stderr.getvalue()

    @pytest.mark.asyncio
    async def test_single_login_failure(self, app, mock_client):
        mock_client.login.side_effect = LoginError("Login failed: nope")

        assert await app.start_single("recent") == 1
        mock_client.recent_threads.assert_not_called()


class TestLogout:

    @pytest.mark.asyncio
    async def test_logout_from_unauthenticated(self, app):
        await app.logout()
        assert app.state == LifecycleState.TERMINATED

    @pytest.mark.asyncio
    async def test_logout_twice_rejected(self, app):
        await app.logout()
        with pytest.raises(LifecycleError):
            await app.logout()

    @pytest.mark.asyncio
    async def test_logout_closes_even_if_bridge_rejects(self, app, mock_client):
        mock_client.logout.side_effect = TransportError("gone")
        await app.logout()
        mock_client.close.assert_awaited_once()
        assert app.state == LifecycleState.TERMINATED
