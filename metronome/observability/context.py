"""
Operation ids for log correlation.

A refresh or a mutation spans several awaits: six reads gathered at once, or
an optimistic apply, a write and a possible rollback. Every log line written
in between carries the same id, so one user action can be followed through
the log. Ids are ``ref-…`` for refreshes and ``mut-…`` for mutations.

The id lives in a ContextVar. asyncio tasks copy the current context when
they start, so two overlapping mutations never see each other's id.
"""

import contextvars
import uuid
from typing import Optional

_operation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "operation_id", default=None
)


def get_operation_id() -> Optional[str]:
    """Id of the refresh or mutation running in this context, if any."""
    return _operation_id_var.get()


def set_operation_id(operation_id: str) -> contextvars.Token:
    return _operation_id_var.set(operation_id)


def generate_operation_id(prefix: str = "op") -> str:
    """``{prefix}-`` plus 12 hex digits, e.g. ``mut-3f2a9c01b7de``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class OperationContext:
    """
    Tags everything logged inside the block with one operation id.

    RefreshController and MutationCoordinator open one per call:

        with OperationContext(prefix="mut"):
            snapshot = store.capture(changes)
            tokens = store.apply(action, changes)
            result = await write()
            # a rollback logged here shares the id of the apply

    The store also stamps the id onto each MutationRecord it appends, so
    ``store.log`` entries can be matched to log lines. Contexts nest; leaving
    the inner one brings back the outer id.
    """

    def __init__(self, operation_id: Optional[str] = None, prefix: str = "op"):
        self.operation_id = operation_id or generate_operation_id(prefix)
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "OperationContext":
        self._token = set_operation_id(self.operation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _operation_id_var.reset(self._token)
            self._token = None
