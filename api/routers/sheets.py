from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from api.deps import get_sheet_store
from sheets.errors import SheetOwnershipError

router = APIRouter(prefix="/api/sheets", tags=["sheets"])


@router.get("")
def list_sheets(owner_id: str = Query(..., min_length=1), limit: int = Query(200, ge=1, le=1000)):
    store = get_sheet_store()
    # Sheets with nothing in them are hidden from the library.
    sheets = [s for s in store.list_for_owner(owner_id, limit=limit) if s.has_real_content()]
    return [
        {
            "id": s.id,
            "title": s.title,
            "updated_at": s.updated_at,
            "entry_count": len(s.entries),
        }
        for s in sheets
    ]


@router.get("/{sheet_id}")
def read_sheet(sheet_id: str, owner_id: str = Query(..., min_length=1)):
    sheet = get_sheet_store().get(sheet_id, owner_id=owner_id)
    if sheet is None:
        raise HTTPException(404, "sheet not found")
    return sheet.to_dict()


@router.delete("/{sheet_id}")
def delete_sheet(sheet_id: str, owner_id: str = Query(..., min_length=1)):
    try:
        removed = get_sheet_store().delete(sheet_id, owner_id=owner_id)
    except SheetOwnershipError:
        # Other owners' sheets are indistinguishable from missing ones.
        removed = False
    if not removed:
        raise HTTPException(404, "sheet not found")
    return {"ok": True}
