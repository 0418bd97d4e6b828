from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.deps import create_session
from api.sse import sse_generator, sse_response
from sheets.errors import DisambiguationPendingError, NoPendingDisambiguationError
from sheets.models import result_to_dict
from sheets.session import EditSession
from sheets.session_registry import close_session, get_session

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class MountBody(BaseModel):
    sheet_id: str | None = None
    guest_id: str | None = None
    owner_id: str | None = None
    is_new: bool = False


class AddSourceBody(BaseModel):
    citation: str
    view_mode: Literal["bilingual", "hebrew", "english"] = "bilingual"


class AddNoteBody(BaseModel):
    body: str
    title: str | None = None


class AddHeaderBody(BaseModel):
    label: str


class UpdateEntryBody(BaseModel):
    view_mode: Literal["bilingual", "hebrew", "english"] | None = None
    body: str | None = None
    title: str | None = None
    label: str | None = None


class VersionBody(BaseModel):
    version_title: str


class ReorderBody(BaseModel):
    order: list[int]


class TitleBody(BaseModel):
    title: str


class SelectBody(BaseModel):
    index: int


class MessageBody(BaseModel):
    text: str


class SheetIdBody(BaseModel):
    sheet_id: str | None = None


def _session(session_id: str) -> EditSession:
    s = get_session(session_id)
    if s is None:
        raise HTTPException(404, "session not found")
    return s


def _call(fn, *args: Any, **kwargs: Any) -> Any:
    try:
        return fn(*args, **kwargs)
    except (DisambiguationPendingError, NoPendingDisambiguationError) as exc:
        raise HTTPException(409, str(exc)) from exc
    except IndexError as exc:
        raise HTTPException(404, str(exc)) from exc
    except (TypeError, ValueError) as exc:
        raise HTTPException(422, str(exc)) from exc


@router.post("")
def open_session(body: MountBody):
    s = _call(create_session, body.guest_id)
    s.mount(body.sheet_id, owner_id=body.owner_id, is_new=body.is_new)
    return s.snapshot()


@router.get("/{session_id}")
def read_session(session_id: str):
    return _session(session_id).snapshot()


@router.delete("/{session_id}")
def end_session(session_id: str):
    if not close_session(session_id):
        raise HTTPException(404, "session not found")
    return {"ok": True}


@router.post("/{session_id}/sources")
def add_source(session_id: str, body: AddSourceBody):
    s = _session(session_id)
    result = _call(s.add_source, body.citation, view_mode=body.view_mode)
    return {**result_to_dict(result), "session": s.snapshot()}


@router.post("/{session_id}/notes")
def add_note(session_id: str, body: AddNoteBody):
    s = _session(session_id)
    index = _call(s.add_note, body.body, body.title)
    return {"index": index, "session": s.snapshot()}


@router.post("/{session_id}/headers")
def add_header(session_id: str, body: AddHeaderBody):
    s = _session(session_id)
    index = _call(s.add_header, body.label)
    return {"index": index, "session": s.snapshot()}


@router.patch("/{session_id}/entries/{index}")
def update_entry(session_id: str, index: int, body: UpdateEntryBody):
    s = _session(session_id)
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(422, "nothing to update")
    _call(s.update_entry, index, **changes)
    return s.snapshot()


@router.delete("/{session_id}/entries/{index}")
def remove_entry(session_id: str, index: int):
    s = _session(session_id)
    _call(s.remove_entry, index)
    return s.snapshot()


@router.post("/{session_id}/entries/{index}/version")
def change_version(session_id: str, index: int, body: VersionBody):
    s = _session(session_id)
    ok = _call(s.change_version, index, body.version_title)
    return {"ok": ok, "session": s.snapshot()}


@router.post("/{session_id}/reorder")
def reorder(session_id: str, body: ReorderBody):
    s = _session(session_id)
    _call(s.reorder, body.order)
    return s.snapshot()


@router.post("/{session_id}/clear")
def clear(session_id: str):
    s = _session(session_id)
    s.clear()
    return s.snapshot()


@router.patch("/{session_id}/title")
def set_title(session_id: str, body: TitleBody):
    s = _session(session_id)
    s.set_title(body.title)
    return s.snapshot()


@router.post("/{session_id}/undo")
def undo(session_id: str):
    s = _session(session_id)
    return {"changed": s.undo(), "session": s.snapshot()}


@router.post("/{session_id}/redo")
def redo(session_id: str):
    s = _session(session_id)
    return {"changed": s.redo(), "session": s.snapshot()}


@router.post("/{session_id}/disambiguation/select")
def select_candidate(session_id: str, body: SelectBody):
    s = _session(session_id)
    result = _call(s.select_candidate, body.index)
    return {**result_to_dict(result), "session": s.snapshot()}


@router.post("/{session_id}/disambiguation/cancel")
def cancel_disambiguation(session_id: str):
    s = _session(session_id)
    _call(s.cancel_disambiguation)
    return s.snapshot()


@router.post("/{session_id}/messages")
def send_message(session_id: str, body: MessageBody):
    s = _session(session_id)
    msg = _call(s.send_message, body.text)
    return {"message": msg.to_dict(), "session": s.snapshot()}


@router.post("/{session_id}/new")
def new_sheet(session_id: str, body: SheetIdBody):
    s = _session(session_id)
    applied = s.new_sheet(body.sheet_id)
    return {"applied": applied, "session": s.snapshot()}


@router.post("/{session_id}/load")
def load_sheet(session_id: str, body: SheetIdBody):
    s = _session(session_id)
    if not body.sheet_id:
        raise HTTPException(422, "sheet_id is required")
    applied = s.load(body.sheet_id)
    return {"applied": applied, "session": s.snapshot()}


@router.get("/{session_id}/status")
async def save_status(session_id: str):
    _session(session_id)

    def poll():
        s = get_session(session_id)
        if s is None:
            return None
        snap = s.coordinator.snapshot()
        return {**snap, "done": not (snap["dirty"] or snap["saving"] or snap["loading"])}

    return sse_response(sse_generator(poll, interval=0.5))
