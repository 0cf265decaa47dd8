"""Exceptions raised by the Metronome client-side engine.

Network and HTTP failures are not exceptions here: the client reports them
through CollaboratorResult. These cover caller mistakes caught before any
optimistic change is made.
"""


class MetronomeError(Exception):
    """Base class for all Metronome errors."""


class EntityNotFoundError(MetronomeError):
    """A mutation referenced an entity that is not in the store."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class InvalidMutationError(MetronomeError):
    """A mutation was requested with invalid input."""


class RecurrenceRuleError(MetronomeError):
    """A key date carries a recurrence rule that cannot be interpreted."""
