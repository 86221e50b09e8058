"""Client for the messaging bridge HTTP API.

The bridge speaks to the actual chat network; messer only needs the small
set of capabilities below. Events are delivered as newline-delimited JSON on
a long-lived GET /events response.
"""

import asyncio
import json
import logging
import os
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Union

import httpx
from pydantic import BaseModel, ValidationError

from .errors import LoginError, MessagingError, TransportError
from .models import Message, Thread, User

logger = logging.getLogger(__name__)

# Default API endpoint
DEFAULT_API_URL = "http://127.0.0.1:8430"
API_TIMEOUT = 10  # seconds

EventSink = Callable[[dict], None]
CredentialsPrompt = Callable[[], Awaitable[tuple]]
MfaPrompt = Callable[[], Awaitable[str]]


class MessagingClient(Protocol):
    """What messer needs from a messaging backend."""

    me: Optional[User]

    async def login(self, prompt_credentials: CredentialsPrompt, prompt_mfa: MfaPrompt) -> User: ...
    async def listen(self, sink: EventSink) -> None: ...
    async def logout(self) -> None: ...
    async def close(self) -> None: ...
    async def get_thread(self, thread_id: str) -> Optional[Thread]: ...
    async def find_thread(self, name: str) -> Optional[Thread]: ...
    async def recent_threads(self, limit: int = 5) -> List[Thread]: ...
    async def history(self, thread_id: str, limit: int = 5) -> List[Message]: ...
    async def contacts(self) -> List[User]: ...
    async def send_message(self, thread_id: str, body: str) -> Optional[Message]: ...
    async def delete_messages(self, thread_id: str, count: int = 1) -> int: ...


class LoginRequest(BaseModel):
    """Credentials for POST /auth/login."""
    email: str
    password: str


class MfaRequest(BaseModel):
    """Second factor for POST /auth/mfa."""
    challenge: str
    code: str


class LoginResponse(BaseModel):
    """Response from either login step."""
    token: Optional[str] = None
    user: Optional[dict] = None
    mfa_required: bool = False
    challenge: Optional[str] = None


class SendMessageRequest(BaseModel):
    body: str


class SendMessageResponse(BaseModel):
    """The bridge may echo the stored message back, or answer with no body."""
    id: Optional[Union[str, int]] = None
    thread_id: Optional[Union[str, int]] = None
    sender_id: Optional[Union[str, int]] = None
    body: Optional[str] = None


class DeleteMessagesRequest(BaseModel):
    """Delete the logged-in user's most recent messages in a thread."""
    count: int = 1


class DeleteMessagesResponse(BaseModel):
    deleted: int = 0


class HttpMessagingClient:
    """Messaging bridge client over HTTP."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ):
        """
        Initialize client.

        Args:
            api_url: Base URL for the bridge (default: MESSER_API_URL or http://127.0.0.1:8430)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            reconnect_delay: Initial delay before reconnecting the event stream
            max_reconnect_delay: Upper bound for the reconnect backoff
        """
        self.api_url = api_url or os.environ.get("MESSER_API_URL", DEFAULT_API_URL)
        self.timeout = timeout
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.me: Optional[User] = None
        self._token: Optional[str] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._http = httpx.AsyncClient(base_url=self.api_url, timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[BaseModel] = None,
        params: Optional[dict] = None,
        allow_missing: bool = False,
    ) -> Optional[Any]:
        """
        Make an HTTP request against the bridge.

        Returns:
            Decoded JSON body, or None for a 404 when allow_missing is set

        Raises:
            TransportError: The bridge could not be reached
            MessagingError: The bridge answered with an error status
        """
        try:
            response = await self._http.request(
                method,
                path,
                json=data.model_dump() if data is not None else None,
                params=params,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            # Connection refused, timeout, etc.
            raise TransportError(f"Messaging service unavailable: {e}")

        if response.status_code == 404 and allow_missing:
            return None
        if response.status_code >= 400:
            raise MessagingError(self._error_detail(response), status_code=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise MessagingError(f"Invalid response from {path}", status_code=response.status_code)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"Request failed with status {response.status_code}"

    async def login(self, prompt_credentials: CredentialsPrompt, prompt_mfa: MfaPrompt) -> User:
        """
        Authenticate, asking for a second factor if the bridge wants one.

        Raises:
            LoginError: If authentication fails for any reason
        """
        try:
            email, password = await prompt_credentials()
            data = await self._request("POST", "/auth/login", LoginRequest(email=email, password=password))
            result = LoginResponse.model_validate(data or {})

            if result.mfa_required:
                if not result.challenge:
                    raise LoginError("Login failed: MFA requested without a challenge")
                code = await prompt_mfa()
                data = await self._request("POST", "/auth/mfa", MfaRequest(challenge=result.challenge, code=code))
                result = LoginResponse.model_validate(data or {})
        except (MessagingError, ValidationError) as e:
            raise LoginError(f"Login failed: {e}")
        except EOFError:
            # stdin closed or Ctrl-D at a prompt
            raise LoginError("Login failed: no credentials given")

        if not result.token or not result.user:
            raise LoginError("Login failed: no session returned")

        self._token = result.token
        self.me = User.from_dict(result.user)
        logger.info(f"Logged in as {self.me.name} ({self.me.id})")
        return self.me

    async def listen(self, sink: EventSink):
        """Begin delivering pushed events to sink in the background."""
        if self._listen_task and not self._listen_task.done():
            return
        self._listen_task = asyncio.create_task(self._event_loop(sink))

    async def _event_loop(self, sink: EventSink):
        """Keep the event stream open, reconnecting with backoff."""
        retry_delay = self.reconnect_delay
        while True:
            try:
                async with self._http.stream(
                    "GET", "/events", headers=self._headers(), timeout=None
                ) as response:
                    if response.status_code >= 400:
                        raise MessagingError(
                            f"Event stream rejected with status {response.status_code}",
                            status_code=response.status_code,
                        )
                    retry_delay = self.reconnect_delay
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            payload = json.loads(line)
                        except ValueError:
                            logger.warning(f"Skipping malformed event line: {line[:200]!r}")
                            continue
                        sink(payload)
                logger.info("Event stream closed by server, reconnecting")
            except asyncio.CancelledError:
                logger.info("Event stream cancelled")
                break
            except (httpx.HTTPError, MessagingError) as e:
                logger.warning(f"Event stream error: {e}; reconnecting in {retry_delay}s")
            await asyncio.sleep(retry_delay)
            retry_delay = min(retry_delay * 2, self.max_reconnect_delay)

    async def _stop_listening(self):
        if self._listen_task:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None

    async def logout(self):
        """End the bridge session."""
        await self._stop_listening()
        if self._token:
            await self._request("POST", "/auth/logout")
        self._token = None
        self.me = None

    async def close(self):
        await self._stop_listening()
        await self._http.aclose()

    async def get_thread(self, thread_id: str) -> Optional[Thread]:
        data = await self._request("GET", f"/threads/{thread_id}", allow_missing=True)
        return Thread.from_dict(data) if data else None

    async def find_thread(self, name: str) -> Optional[Thread]:
        """
        Find a thread by name, case-insensitively.

        An exact name match wins. Otherwise the search must be unambiguous:
        a partial name matching several threads finds nothing.
        """
        data = await self._request("GET", "/threads", params={"name": name})
        threads = [Thread.from_dict(t) for t in (data or {}).get("threads", [])]
        for thread in threads:
            if thread.name.lower() == name.lower():
                return thread
        if len(threads) == 1:
            return threads[0]
        if threads:
            logger.info(f"Thread name {name!r} is ambiguous ({len(threads)} matches)")
        return None

    async def recent_threads(self, limit: int = 5) -> List[Thread]:
        data = await self._request("GET", "/threads", params={"limit": limit})
        return [Thread.from_dict(t) for t in (data or {}).get("threads", [])]

    async def history(self, thread_id: str, limit: int = 5) -> List[Message]:
        data = await self._request("GET", f"/threads/{thread_id}/messages", params={"limit": limit})
        return [Message.from_dict(m) for m in (data or {}).get("messages", [])]

    async def contacts(self) -> List[User]:
        data = await self._request("GET", "/contacts")
        return [User.from_dict(c) for c in (data or {}).get("contacts", [])]

    async def send_message(self, thread_id: str, body: str) -> Optional[Message]:
        """
        Send body to a thread.

        Returns:
            The stored message if the bridge echoed one back, else None.
            The message has been delivered either way.
        """
        try:
            data = await self._request(
                "POST", f"/threads/{thread_id}/messages", SendMessageRequest(body=body)
            )
        except MessagingError as e:
            # A 2xx status means the bridge accepted the message
            if not 200 <= e.status_code < 300:
                raise
            logger.warning(f"Unreadable send response for thread {thread_id}: {e}")
            return None
        try:
            sent = SendMessageResponse.model_validate(data or {})
        except ValidationError as e:
            logger.warning(f"Unreadable send response for thread {thread_id}: {e}")
            return None
        if sent.id is None:
            return None
        return Message(
            id=str(sent.id),
            thread_id=str(sent.thread_id or thread_id),
            sender_id=str(sent.sender_id or (self.me.id if self.me else "")),
            body=sent.body if sent.body is not None else body,
        )

    async def delete_messages(self, thread_id: str, count: int = 1) -> int:
        """Delete the logged-in user's last count messages in a thread."""
        data = await self._request(
            "POST", f"/threads/{thread_id}/messages/delete", DeleteMessagesRequest(count=count)
        )
        return DeleteMessagesResponse.model_validate(data or {}).deleted
