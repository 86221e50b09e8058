"""Built-in command handlers for messer.

Each handler receives the full command line (verb included) and the
CommandContext, validates its own arguments, and returns text to show the
user or None.
"""

import logging
import re
from typing import List, Optional, Tuple

from .command_registry import CommandRegistry, CommandSpec
from .errors import CommandError
from .models import CommandContext, Thread

logger = logging.getLogger(__name__)

# "name with spaces" or a single bare token, followed by the rest of the line
_TARGET_RE = re.compile(r'^\s*(?:"([^"]+)"|(\S+))(?:\s+(.*))?$', re.DOTALL)

MAX_COUNT = 100


def split_verb(command: str) -> Tuple[str, str]:
    """Split a command line into its verb and the remainder."""
    parts = command.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def parse_target(args: str) -> Tuple[Optional[str], str]:
    """
    Pull a thread identifier off the front of an argument string.

    Returns:
        Tuple of (target, remainder); target is None if args is blank
    """
    match = _TARGET_RE.match(args)
    if not match:
        return None, ""
    target = match.group(1) or match.group(2)
    return target, (match.group(3) or "").strip()


def parse_count(value: str, default: int) -> int:
    """Parse an optional positive message/thread count."""
    if not value:
        return default
    if not value.isdigit() or int(value) <= 0:
        raise CommandError(f"Expected a positive number, got: {value!r}")
    return min(int(value), MAX_COUNT)


async def resolve_thread(ctx: CommandContext, identifier: str) -> Thread:
    """
    Resolve a thread identifier (ID or name) to a thread.

    Raises:
        CommandError: If no thread matches
    """
    if not identifier or not identifier.strip():
        raise CommandError("No thread given")

    # Try as thread ID first
    thread = await ctx.client.get_thread(identifier)
    if thread:
        return thread

    # Not found by ID, try as name
    thread = await ctx.client.find_thread(identifier)
    if thread:
        return thread

    raise CommandError(f"No thread found for '{identifier}'")


async def cmd_message(command: str, ctx: CommandContext) -> Optional[str]:
    """message "<thread>" <body>"""
    _, args = split_verb(command)
    target, body = parse_target(args)
    if not target or not body:
        raise CommandError('Invalid message - check your syntax\nUsage: message "<thread>" <text>')

    thread = await resolve_thread(ctx, target)
    await ctx.client.send_message(thread.id, body)
    ctx.session.touch_thread(thread.id)
    logger.debug(f"Sent {len(body)} chars to thread {thread.id}")
    return None


async def cmd_reply(command: str, ctx: CommandContext) -> Optional[str]:
    """reply <body> - send to the most recently active thread."""
    _, body = split_verb(command)
    if not body:
        raise CommandError("Invalid reply - check your syntax\nUsage: reply <text>")
    if not ctx.session.last_thread:
        raise CommandError("No thread to reply to")

    await ctx.client.send_message(ctx.session.last_thread, body)
    return None


async def cmd_history(command: str, ctx: CommandContext) -> Optional[str]:
    _, args = split_verb(command)
    target, rest = parse_target(args)
    if not target:
        raise CommandError('Usage: history "<thread>" [count]')
    count = parse_count(rest, ctx.default_history_count)

    thread = await resolve_thread(ctx, target)
    messages = await ctx.client.history(thread.id, limit=count)
    if not messages:
        return f"No messages in {thread.name}"

    lines = []
    for msg in messages:
        sender = msg.sender_name or msg.sender_id
        if ctx.client.me and msg.sender_id == ctx.client.me.id:
            sender = "You"
        lines.append(f"{sender}: {msg.body}")
    return "\n".join(lines)


async def cmd_recent(command: str, ctx: CommandContext) -> Optional[str]:
    _, args = split_verb(command)
    count = parse_count(args.strip(), ctx.default_recent_count)

    threads = await ctx.client.recent_threads(limit=count)
    if not threads:
        return "No recent threads"
    return "\n".join(f"[{i}] {t.name}" for i, t in enumerate(threads))


async def cmd_contacts(command: str, ctx: CommandContext) -> Optional[str]:
    contacts = await ctx.client.contacts()
    if not contacts:
        return "You have no contacts :("
    return "\n".join(sorted((c.name for c in contacts), key=str.lower))


async def cmd_delete(command: str, ctx: CommandContext) -> Optional[str]:
    """delete "<thread>" [count] - delete your own most recent messages."""
    _, args = split_verb(command)
    target, rest = parse_target(args)
    if not target:
        raise CommandError('Usage: delete "<thread>" [count]')
    count = parse_count(rest, 1)

    thread = await resolve_thread(ctx, target)
    deleted = await ctx.client.delete_messages(thread.id, count)
    return f"Deleted {deleted} message(s) from {thread.name}"


async def cmd_lock(command: str, ctx: CommandContext) -> Optional[str]:
    """lock "<thread>" [--secret]"""
    _, args = split_verb(command)
    target, rest = parse_target(args)
    if not target:
        raise CommandError('Usage: lock "<thread>" [--secret]')
    if rest and rest != "--secret":
        raise CommandError(f"Unknown lock option: {rest}")
    anonymous = rest == "--secret"

    thread = await resolve_thread(ctx, target)
    ctx.lock.set_lock(thread.id, anonymous=anonymous)
    ctx.session.touch_thread(thread.id)

    mode = " (anonymous mode)" if anonymous else ""
    return f"Locked on to {thread.name}{mode}. Type 'unlock' to release."


async def cmd_unlock(command: str, ctx: CommandContext) -> Optional[str]:
    if not ctx.lock.is_locked():
        raise CommandError("Not locked to any thread")
    target = ctx.lock.get_locked_target()
    ctx.lock.clear_lock()
    return f"Unlocked from {target}"


async def cmd_clear(command: str, ctx: CommandContext) -> Optional[str]:
    if ctx.session.surface is not None:
        ctx.session.surface.clear_screen()
    return None


async def cmd_help(command: str, ctx: CommandContext) -> Optional[str]:
    if ctx.registry is None:
        return None
    lines = []
    for spec in ctx.registry.commands():
        aliases = f" ({', '.join(spec.aliases)})" if spec.aliases else ""
        lines.append(f"{spec.usage or spec.name}{aliases}\n    {spec.help}")
    return "\n".join(lines)


async def cmd_logout(command: str, ctx: CommandContext) -> Optional[str]:
    if ctx.logout is None:
        raise CommandError("Logout is not available here")
    await ctx.logout()
    return None


COMMANDS: List[CommandSpec] = [
    CommandSpec("message", cmd_message, ("m",), 'message "<thread>" <text>', "Send a message to a thread"),
    CommandSpec("reply", cmd_reply, ("r",), "reply <text>", "Reply to the most recently active thread"),
    CommandSpec("history", cmd_history, ("h",), 'history "<thread>" [count]', "Show the last messages in a thread"),
    CommandSpec("recent", cmd_recent, (), "recent [count]", "List the most recent threads"),
    CommandSpec("contacts", cmd_contacts, (), "contacts", "List your contacts"),
    CommandSpec("delete", cmd_delete, (), 'delete "<thread>" [count]', "Delete your last messages in a thread"),
    CommandSpec("lock", cmd_lock, (), 'lock "<thread>" [--secret]', "Send every line to one thread; --secret deletes each message after sending"),
    CommandSpec("unlock", cmd_unlock, (), "unlock", "Release the thread lock"),
    CommandSpec("clear", cmd_clear, (), "clear", "Clear the screen"),
    CommandSpec("help", cmd_help, (), "help", "Show this help"),
    CommandSpec("logout", cmd_logout, (), "logout", "Log out and quit"),
]


def build_default_registry() -> CommandRegistry:
    """Build the registry of built-in commands."""
    return CommandRegistry.build(COMMANDS)
