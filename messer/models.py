"""Data models for messer."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from .errors import EventParseError


class LifecycleState(Enum):
    """Session lifecycle state."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    LISTENING = "listening"        # Logged in, event stream subscribed
    INTERACTIVE = "interactive"    # Reading input lines
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class ThreadEventKind(Enum):
    """Kinds of non-message thread events pushed by the backend."""
    RENAMED = "renamed"
    PARTICIPANT_ADDED = "participant_added"
    PARTICIPANT_REMOVED = "participant_removed"
    TYPING = "typing"
    READ_RECEIPT = "read_receipt"
    REACTION = "reaction"
    OTHER = "other"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass
class User:
    """A messaging account (the logged-in user or a contact)."""
    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(id=str(data["id"]), name=data.get("name") or str(data["id"]))


@dataclass
class Thread:
    """A conversation on the messaging backend."""
    id: str
    name: str
    is_group: bool = False
    participants: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_group": self.is_group,
            "participants": list(self.participants),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Thread":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or str(data["id"]),
            is_group=bool(data.get("is_group", False)),
            participants=[str(p) for p in data.get("participants", [])],
        )


@dataclass
class Message:
    """A single message in a thread."""
    id: str
    thread_id: str
    sender_id: str
    body: str
    sender_name: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "body": self.body,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=str(data["id"]),
            thread_id=str(data["thread_id"]),
            sender_id=str(data["sender_id"]),
            body=data.get("body") or "",
            sender_name=data.get("sender_name"),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class MessageEvent:
    """A message arrived in some thread."""
    thread_id: str
    sender_id: str
    body: str
    self_authored: bool = False
    sender_name: Optional[str] = None
    thread_name: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class ThreadEvent:
    """Something other than a message happened in a thread."""
    kind: ThreadEventKind
    thread_id: Optional[str] = None
    author_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def updates_last_thread(self) -> bool:
        """Typing indicators and read receipts don't make a thread active."""
        return self.thread_id is not None and self.kind not in (
            ThreadEventKind.TYPING,
            ThreadEventKind.READ_RECEIPT,
        )


InboundEvent = Union[MessageEvent, ThreadEvent]


def parse_event(data: dict, me_id: Optional[str] = None) -> InboundEvent:
    """
    Build an inbound event from a backend payload.

    Args:
        data: Decoded payload with a "type" of "message" or "thread_event"
        me_id: Logged-in user ID, used when the payload has no is_self flag

    Returns:
        MessageEvent or ThreadEvent

    Raises:
        EventParseError: If the payload is not a known event
    """
    if not isinstance(data, dict):
        raise EventParseError(f"Expected event mapping, got {type(data).__name__}")

    event_type = data.get("type")
    try:
        if event_type == "message":
            sender_id = str(data["sender_id"])
            self_authored = data.get("is_self")
            if self_authored is None:
                self_authored = me_id is not None and sender_id == me_id
            return MessageEvent(
                thread_id=str(data["thread_id"]),
                sender_id=sender_id,
                body=data.get("body") or "",
                self_authored=bool(self_authored),
                sender_name=data.get("sender_name"),
                thread_name=data.get("thread_name"),
                timestamp=_parse_timestamp(data.get("timestamp")),
            )
        if event_type == "thread_event":
            try:
                kind = ThreadEventKind(data.get("kind", "other"))
            except ValueError:
                kind = ThreadEventKind.OTHER
            thread_id = data.get("thread_id")
            return ThreadEvent(
                kind=kind,
                thread_id=str(thread_id) if thread_id is not None else None,
                author_id=data.get("author_id"),
                description=data.get("description"),
            )
    except (KeyError, TypeError, ValueError) as e:
        raise EventParseError(f"Malformed {event_type} event: {e}")

    raise EventParseError(f"Unknown event type: {event_type!r}")


@dataclass
class Session:
    """
    Long-lived state of one messer session.

    Owned by MesserApp and handed to the router and the event dispatcher.
    """
    last_thread: Optional[str] = None
    unread_count: int = 0
    debug: bool = False
    surface: Optional[Any] = None  # LineSurface once the interactive loop starts

    def record_incoming(self, thread_id: str, self_authored: bool = False) -> int:
        """Account for a message pushed by the backend. Returns the unread count."""
        if not self_authored:
            self.unread_count += 1
        self.last_thread = thread_id
        return self.unread_count

    def touch_thread(self, thread_id: str):
        """Mark a thread as the most recently active one."""
        self.last_thread = thread_id

    def clear_unread(self) -> bool:
        """Reset the unread counter. Returns True if anything was pending."""
        if self.unread_count == 0:
            return False
        self.unread_count = 0
        return True


@dataclass
class CommandContext:
    """Everything a command handler may act on."""
    session: Session
    lock: Any                      # LockStore
    client: Any                    # MessagingClient
    registry: Any = None           # CommandRegistry, for help
    logout: Optional[Callable[[], Awaitable[None]]] = None
    default_history_count: int = 5
    default_recent_count: int = 5

    def write(self, text: str):
        """Show a line to the user if an output surface is attached."""
        if self.session.surface is not None:
            self.session.surface.write(text)
