"""Workspace integrity error types with actionable feedback.

These errors are raised when an operation addresses an entity that does
not exist or would break a workspace invariant, similar to foreign key and
check constraint violations in databases.

Each error carries a ``kind`` used by the facade to classify failures, and
can format itself as readable feedback for display.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import ClassVar


class DtreeError(Exception):
    """Base class for recoverable engine errors.

    Raising one never leaves a workspace half-modified: guards run before
    mutation, and the facade rolls back anything else.
    """

    kind: ClassVar[str] = "error"

    def to_feedback(self) -> str:
        """Format the error as a human-readable message."""
        return str(self)


class ReferenceMissError(DtreeError):
    """An operation addressed an id that does not exist."""

    kind = "reference"


class InvariantGuardError(DtreeError):
    """An operation was refused because it would break an invariant."""

    kind = "guard"


@dataclass
class EntityNotFoundError(ReferenceMissError):
    """Raised when referencing a non-existent entity.

    Attributes:
        entity_id: The ID that was referenced but doesn't exist.
        available: IDs of the same kind that could be used instead.
        context: Description of where the reference occurred.
    """

    entity_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    entity_label: ClassVar[str] = "Entity"

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"{self.entity_label} '{self.entity_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        return msg

    def _get_suggestions(self) -> list[str]:
        """Find similar IDs that might be typos."""
        return get_close_matches(self.entity_id, self.available, n=3, cutoff=0.6)

    def to_feedback(self) -> str:
        lines = [
            f"## Reference Error: {self.entity_label} Not Found",
            "",
            f"**Referenced**: `{self.entity_id}`",
        ]
        if self.context:
            lines.append(f"**Context**: {self.context}")

        suggestions = self._get_suggestions()
        if suggestions:
            lines.extend(["", "**Did you mean one of these?**"])
            lines.extend(f"  - `{s}`" for s in suggestions)

        if self.available:
            lines.extend(["", "**Valid IDs**:"])
            for a in sorted(self.available)[:20]:
                lines.append(f"  - `{a}`")
            if len(self.available) > 20:
                lines.append(f"  - ... and {len(self.available) - 20} more")

        return "\n".join(lines)


class NodeNotFoundError(EntityNotFoundError):
    entity_label = "Node"

    @property
    def node_id(self) -> str:
        return self.entity_id


class CharacterNotFoundError(EntityNotFoundError):
    entity_label = "Character"


class StoryNotFoundError(EntityNotFoundError):
    entity_label = "Story"


class RelationshipNotFoundError(EntityNotFoundError):
    entity_label = "Relationship"


class WorkspaceNotFoundError(EntityNotFoundError):
    entity_label = "Workspace"


@dataclass
class EdgeEndpointError(ReferenceMissError):
    """Raised when an edge would point at a node that does not exist.

    Attributes:
        from_id: Source node ID.
        to_id: Target node ID.
        missing: Which endpoint is missing ("from", "to", or "both").
    """

    from_id: str
    to_id: str
    missing: str  # "from", "to", or "both"

    def __post_init__(self) -> None:
        if self.missing == "both":
            msg = f"Edge endpoints not found: '{self.from_id}' and '{self.to_id}'"
        elif self.missing == "from":
            msg = f"Edge source not found: '{self.from_id}'"
        else:
            msg = f"Edge target not found: '{self.to_id}'"
        super().__init__(msg)


@dataclass
class LastWorkspaceError(InvariantGuardError):
    """Raised when deleting the only remaining workspace."""

    workspace_id: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Cannot delete workspace '{self.workspace_id}': it is the last remaining workspace"
        )


@dataclass
class NoWorkspaceError(InvariantGuardError):
    """Raised when an active workspace is needed but the registry is empty."""

    def __post_init__(self) -> None:
        super().__init__("No workspace found.")


@dataclass
class DuplicateRelationshipError(InvariantGuardError):
    """Raised when a second relationship is added for the same character pair."""

    char_a_id: str
    char_b_id: str
    existing_id: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Characters '{self.char_a_id}' and '{self.char_b_id}' already share "
            f"relationship '{self.existing_id}'"
        )


@dataclass
class EmptySelectionError(InvariantGuardError):
    """Raised when an export resolves to no nodes."""

    def __post_init__(self) -> None:
        super().__init__("Nothing selected.")


@dataclass
class InvalidStoryScopeError(InvariantGuardError):
    """Raised when a story deletion scope cannot be applied."""

    story_id: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Cannot delete story '{self.story_id}': {self.reason}")


@dataclass
class GraphCorruptionError(Exception):
    """Raised when post-mutation invariant checks detect corruption.

    Unlike DtreeError, this indicates a code bug rather than bad input. The
    workspace should be rolled back to the last known good state.

    Attributes:
        violations: List of invariant violations found.
        operation: Operation after which corruption was detected.
    """

    violations: list[str]
    operation: str = ""

    def __post_init__(self) -> None:
        msg = f"Workspace corruption detected after {self.operation or 'unknown'} operation"
        if self.violations:
            msg += f": {len(self.violations)} violation(s)"
        super().__init__(msg)

    def __str__(self) -> str:
        lines = [f"Workspace corruption detected after {self.operation or 'unknown'} operation:"]
        for v in self.violations[:5]:
            lines.append(f"  - {v}")
        if len(self.violations) > 5:
            lines.append(f"  - ... and {len(self.violations) - 5} more")
        return "\n".join(lines)


@dataclass
class InvalidPatchError(DtreeError):
    """Raised when an update names unknown fields or carries invalid values."""

    entity_label: str
    detail: str

    kind = "validation"

    def __post_init__(self) -> None:
        super().__init__(f"Invalid {self.entity_label} update: {self.detail}")
