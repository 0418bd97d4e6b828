from __future__ import annotations

from fastapi import APIRouter, Query

from api.deps import get_resolver
from sheets.models import result_to_dict

router = APIRouter(prefix="/api/references", tags=["references"])


@router.get("/resolve")
def resolve_reference(citation: str = Query(..., min_length=1)):
    """Resolve a citation without touching any session."""
    return result_to_dict(get_resolver().resolve(citation))
