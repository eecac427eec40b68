"""Typed per-step content.

Stored rows keep the open ``formData`` / ``checklistItems`` / ``dynamicListData``
columns. Everything above the repository works with one of the variants of
``StepContent`` instead, selected by the step type, so callers never have to
check for missing keys or nulls.
"""

from __future__ import annotations

from typing import Annotated, Any, Callable, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from compliance_workflow.db.enums import StepTypeEnum
from compliance_workflow.workflow.errors import WorkflowValidationError

TEXT_VALUE_KEY = "value"

TEXT_STEP_TYPES = {StepTypeEnum.form_text, StepTypeEnum.form_textarea}
LIST_STEP_TYPES = {StepTypeEnum.dynamic_list, StepTypeEnum.correction_list}


def new_entry_id() -> str:
    return f"item-{uuid4().hex}"


class ChecklistItem(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1)
    label: str = ""
    checked: bool = False


class ListEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1)
    value: str = ""


class ContentSnapshot(BaseModel):
    """The three editable content fields of a step, compared as one unit."""

    model_config = ConfigDict(frozen=True)

    form_data: dict[str, Any] = Field(default_factory=dict)
    checklist_items: tuple[ChecklistItem, ...] = ()
    dynamic_list_data: tuple[ListEntry, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        return {
            "formData": dict(self.form_data),
            "checklistItems": [item.model_dump() for item in self.checklist_items],
            "dynamicListData": [entry.model_dump() for entry in self.dynamic_list_data],
        }


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_type: Literal[StepTypeEnum.form_text, StepTypeEnum.form_textarea]
    value: str = ""

    def with_value(self, value: str) -> "TextContent":
        return self.model_copy(update={"value": value})

    def to_snapshot(self) -> ContentSnapshot:
        return ContentSnapshot(form_data={TEXT_VALUE_KEY: self.value})


class ChecklistContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_type: Literal[StepTypeEnum.checklist] = StepTypeEnum.checklist
    items: tuple[ChecklistItem, ...] = ()

    @property
    def checked_count(self) -> int:
        return sum(1 for item in self.items if item.checked)

    @property
    def checked_ratio(self) -> float:
        # In-step indicator only; unrelated to the deliverable's compliance progress.
        if not self.items:
            return 0.0
        return self.checked_count / len(self.items)

    def toggle(self, item_id: str) -> "ChecklistContent":
        if not any(item.id == item_id for item in self.items):
            raise WorkflowValidationError(f"Unknown checklist item: {item_id}")
        items = tuple(
            item.model_copy(update={"checked": not item.checked}) if item.id == item_id else item
            for item in self.items
        )
        return self.model_copy(update={"items": items})

    def to_snapshot(self) -> ContentSnapshot:
        return ContentSnapshot(checklist_items=self.items)


class ListContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_type: Literal[StepTypeEnum.dynamic_list, StepTypeEnum.correction_list]
    entries: tuple[ListEntry, ...] = ()

    def append(self, text: str, *, id_factory: Callable[[], str] = new_entry_id) -> "ListContent":
        cleaned = text.strip()
        if not cleaned:
            return self
        entry = ListEntry(id=id_factory(), value=cleaned)
        return self.model_copy(update={"entries": self.entries + (entry,)})

    def edit(self, entry_id: str, text: str) -> "ListContent":
        self._require(entry_id)
        entries = tuple(
            entry.model_copy(update={"value": text}) if entry.id == entry_id else entry
            for entry in self.entries
        )
        return self.model_copy(update={"entries": entries})

    def remove(self, entry_id: str) -> "ListContent":
        self._require(entry_id)
        return self.model_copy(
            update={"entries": tuple(entry for entry in self.entries if entry.id != entry_id)}
        )

    def _require(self, entry_id: str) -> None:
        if not any(entry.id == entry_id for entry in self.entries):
            raise WorkflowValidationError(f"Unknown list entry: {entry_id}")

    def to_snapshot(self) -> ContentSnapshot:
        return ContentSnapshot(dynamic_list_data=self.entries)


class FileContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_type: Literal[StepTypeEnum.file_upload] = StepTypeEnum.file_upload
    file_url: str | None = None

    @property
    def has_file(self) -> bool:
        return bool(self.file_url)

    def to_snapshot(self) -> ContentSnapshot:
        return ContentSnapshot()


class ApprovalContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_type: Literal[StepTypeEnum.approval] = StepTypeEnum.approval

    def to_snapshot(self) -> ContentSnapshot:
        return ContentSnapshot()


StepContent = Annotated[
    Union[TextContent, ChecklistContent, ListContent, FileContent, ApprovalContent],
    Field(discriminator="step_type"),
]

_checklist_adapter = TypeAdapter(list[ChecklistItem])
_entries_adapter = TypeAdapter(list[ListEntry])


def _parse_checklist(raw: Any) -> tuple[ChecklistItem, ...]:
    if raw is None:
        return ()
    try:
        items = tuple(_checklist_adapter.validate_python(raw))
    except PydanticValidationError as exc:
        raise WorkflowValidationError(f"Malformed checklist items: {exc.errors()[0]['msg']}") from exc
    _ensure_unique_ids([item.id for item in items], kind="checklist item")
    return items


def _parse_entries(raw: Any) -> tuple[ListEntry, ...]:
    if raw is None:
        return ()
    try:
        entries = tuple(_entries_adapter.validate_python(raw))
    except PydanticValidationError as exc:
        raise WorkflowValidationError(f"Malformed list entries: {exc.errors()[0]['msg']}") from exc
    _ensure_unique_ids([entry.id for entry in entries], kind="list entry")
    return entries


def _parse_text(raw: Any) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, dict):
        raise WorkflowValidationError("formData must be an object")
    value = raw.get(TEXT_VALUE_KEY)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise WorkflowValidationError(f"formData.{TEXT_VALUE_KEY} must be a string")
    return value


def _ensure_unique_ids(ids: list[str], *, kind: str) -> None:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise WorkflowValidationError(f"Duplicate {kind} id: {item_id}")
        seen.add(item_id)


def load_content(
    step_type: StepTypeEnum,
    *,
    form_data: Any = None,
    checklist_items: Any = None,
    dynamic_list_data: Any = None,
    file_url: str | None = None,
):
    """Build the typed content for ``step_type``; absent fields become empty defaults."""
    step_type = StepTypeEnum(step_type)
    if step_type in TEXT_STEP_TYPES:
        return TextContent(step_type=step_type, value=_parse_text(form_data))
    if step_type == StepTypeEnum.checklist:
        return ChecklistContent(items=_parse_checklist(checklist_items))
    if step_type in LIST_STEP_TYPES:
        return ListContent(step_type=step_type, entries=_parse_entries(dynamic_list_data))
    if step_type == StepTypeEnum.file_upload:
        return FileContent(file_url=file_url or None)
    return ApprovalContent()


def apply_snapshot(current, snapshot: ContentSnapshot):
    """Return ``current`` with the submitter's edits from ``snapshot`` applied.

    Checklist labels and membership come from the configured items; only the
    ``checked`` flags are taken from the snapshot.
    """
    if isinstance(current, TextContent):
        return current.with_value(_parse_text(snapshot.form_data))
    if isinstance(current, ChecklistContent):
        submitted = {item.id: item for item in snapshot.checklist_items}
        known = {item.id for item in current.items}
        unknown = sorted(set(submitted) - known)
        if unknown:
            raise WorkflowValidationError(f"Unknown checklist items: {', '.join(unknown)}")
        items = tuple(
            item.model_copy(update={"checked": submitted[item.id].checked}) if item.id in submitted else item
            for item in current.items
        )
        return current.model_copy(update={"items": items})
    if isinstance(current, ListContent):
        _ensure_unique_ids([entry.id for entry in snapshot.dynamic_list_data], kind="list entry")
        return current.model_copy(update={"entries": tuple(snapshot.dynamic_list_data)})
    if isinstance(current, ApprovalContent):
        raise WorkflowValidationError("Approval steps have no submitter content")
    return current


def snapshot_from_wire(payload: dict[str, Any] | None) -> ContentSnapshot:
    """Parse a ``{formData, checklistItems, dynamicListData}`` body; nulls become empty."""
    payload = payload or {}
    form_data = payload.get("formData")
    if form_data is None:
        form_data = {}
    if not isinstance(form_data, dict):
        raise WorkflowValidationError("formData must be an object")
    return ContentSnapshot(
        form_data=form_data,
        checklist_items=_parse_checklist(payload.get("checklistItems")),
        dynamic_list_data=_parse_entries(payload.get("dynamicListData")),
    )
