"""
Write contracts — Pydantic models for every request body the dashboard sends.

Each model validates caller input before anything touches the store, and
``payload()`` produces the JSON body the collaborator expects.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from metronome.models import ActionStatus, Priority


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# ==== Action items ====
# PATCH/POST/DELETE /action-items


class ToggleActionItemRequest(_Request):
    action: Literal["toggle"] = "toggle"
    id: str


class UpdateActionItemRequest(_Request):
    """Editable fields of an action item. At least one must be given."""

    action: Literal["update"] = "update"
    id: str
    title: str | None = Field(default=None, min_length=1)
    deadline: date | None = None
    status: ActionStatus | None = None

    def changes(self) -> dict:
        """Fields to patch locally. Only ``deadline`` may be cleared."""
        fields = self.model_dump(exclude={"action", "id"}, exclude_unset=True)
        return {k: v for k, v in fields.items() if v is not None or k == "deadline"}

    def payload(self) -> dict:
        # an explicit None deadline is sent, it clears the deadline
        body = {"action": self.action, "id": self.id}
        changed = self.changes()
        if changed:
            body.update(self.model_dump(mode="json", include=set(changed)))
        return body


class CreateActionItemRequest(_Request):
    initiative_id: str
    title: str = Field(min_length=1)
    deadline: date | None = None

    def payload(self) -> dict:
        # the collaborator wants an explicit null deadline
        return self.model_dump(mode="json")


class DeleteActionItemRequest(_Request):
    id: str


# ==== Decisions ====
# PATCH /decisions


class DecideRequest(_Request):
    action: Literal["decide"] = "decide"
    id: str
    decision_text: str

    @field_validator("decision_text")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("decision text must not be blank")
        return v


class DeferRequest(_Request):
    action: Literal["defer"] = "defer"
    id: str


# ==== Initiatives ====
# PATCH /initiatives/{id}, POST /initiatives


class UpdateInitiativeRequest(_Request):
    action: Literal["update"] = "update"
    priority: Priority


class CreateInitiativeRequest(_Request):
    title: str = Field(min_length=1)
    description: str | None = None
    function_tag: str
    priority: Priority = Priority.NORMAL
    owner_label: str | None = None
    status_label: str | None = None
    deadline: date | None = None
    deadline_label: str | None = None

    def payload(self) -> dict:
        return self.model_dump(mode="json")


# ==== Syncs ====
# POST /syncs, PATCH /syncs/{id}


class CreateSyncRequest(_Request):
    """Record of a finished leadership sync."""

    sync_date: date
    title: str = "Leadership Sync"
    notes: str | None = None
    attendee_ids: list[str] = Field(default_factory=list)
    started_at: str
    ended_at: str
    duration_seconds: int = Field(ge=0)
    next_sync_date: date | None = None
    next_sync_focus: str | None = None
    focus_areas: list[str] = Field(default_factory=list)
    items_discussed: int = Field(default=0, ge=0)
    decisions_made: int = Field(default=0, ge=0)
    action_items_completed: int = Field(default=0, ge=0)

    def payload(self) -> dict:
        return self.model_dump(mode="json")


class UpdateNextSyncRequest(_Request):
    """Only the fields that were filled in are sent."""

    next_sync_date: date | None = None
    next_sync_focus: str | None = None

    @field_validator("next_sync_focus")
    @classmethod
    def _blank_is_none(cls, v: str | None) -> str | None:
        return v or None

    @property
    def is_empty(self) -> bool:
        return self.next_sync_date is None and self.next_sync_focus is None
