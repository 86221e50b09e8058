"""Keyword -> handler lookup for messer commands."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from .models import CommandContext

Handler = Callable[[str, CommandContext], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class CommandSpec:
    """A command keyword, its handler and how it is invoked."""
    name: str
    handler: Handler
    aliases: tuple = ()
    usage: str = ""
    help: str = ""


@dataclass
class CommandRegistry:
    """
    Static table of commands, built once at startup.

    Both command names and aliases resolve to the same handler.
    """
    specs: List[CommandSpec] = field(default_factory=list)
    _by_keyword: Dict[str, CommandSpec] = field(default_factory=dict, repr=False)

    @classmethod
    def build(cls, specs: Iterable[CommandSpec]) -> "CommandRegistry":
        """
        Build a registry from command specs.

        Raises:
            ValueError: If two specs claim the same keyword
        """
        registry = cls()
        for spec in specs:
            for keyword in (spec.name, *spec.aliases):
                if keyword in registry._by_keyword:
                    raise ValueError(f"Duplicate command keyword: {keyword!r}")
                registry._by_keyword[keyword] = spec
            registry.specs.append(spec)
        return registry

    def resolve(self, keyword: str) -> Optional[Handler]:
        """Get the handler for a keyword, or None if it is not a command."""
        spec = self._by_keyword.get(keyword)
        return spec.handler if spec else None

    def get_spec(self, keyword: str) -> Optional[CommandSpec]:
        return self._by_keyword.get(keyword)

    def commands(self) -> List[CommandSpec]:
        return list(self.specs)
