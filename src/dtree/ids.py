"""Process-unique identifier generation.

Identifiers are decimal strings drawn from an incrementing counter. The
counter starts above the ids used by the built-in demo graph so seeded
workspaces never collide with freshly created entities.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_SEED = 200


class IdGenerator:
    """Incrementing string id source.

    One instance is shared per process by default (see ``get_id_generator``),
    but every factory and merge accepts an explicit generator so tests can
    use an isolated, deterministic sequence.
    """

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self._next = seed

    def fresh_id(self) -> str:
        """Return an id distinct from every id this generator has issued."""
        value = self._next
        self._next += 1
        return str(value)

    def peek(self) -> int:
        """Return the counter value the next ``fresh_id`` call will use."""
        return self._next

    def reset(self, seed: int = DEFAULT_SEED) -> None:
        """Restart the sequence at *seed*."""
        self._next = seed

    def ensure_above(self, existing: Iterable[str]) -> None:
        """Advance the counter past any numeric id in *existing*.

        Non-numeric ids are ignored; they can never collide with the
        decimal ids this generator produces.
        """
        highest = max((int(i) for i in existing if i.isdigit()), default=-1)
        if highest >= self._next:
            self._next = highest + 1

    def __repr__(self) -> str:
        return f"IdGenerator(next={self._next})"


_default = IdGenerator()


def get_id_generator() -> IdGenerator:
    """Return the process-wide generator."""
    return _default


def fresh_id() -> str:
    """Draw an id from the process-wide generator."""
    return _default.fresh_id()
