from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...services import NoteService
from ..dependencies import get_note_service
from ..schemas import NoteCreate, NoteOut, NoteUpdate
from ..utils import require_found

router = APIRouter(
    prefix="/api/v1/notes",
    tags=["notes"],
)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[NoteOut],
    summary="List Notes",
    description="List notes, most recently updated first. Unsaved edits are included.",
)
async def list_notes(service: NoteService = Depends(get_note_service)) -> List[NoteOut]:
    return [NoteOut.from_note(n) for n in service.notes]


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=NoteOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Note",
    description="Create a note; a blank title becomes 'Untitled Note'.",
)
async def create_note(payload: NoteCreate, service: NoteService = Depends(get_note_service)) -> NoteOut:
    return NoteOut.from_note(await service.add_note(payload.title, payload.content))


# PUBLIC_INTERFACE
@router.post(
    "/flush",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Flush Note Saves",
    description="Persist every note edit still waiting for its autosave delay.",
)
async def flush_notes(service: NoteService = Depends(get_note_service)) -> Response:
    await service.flush_pending_saves()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get(
    "/{note_id}",
    response_model=NoteOut,
    summary="Get Note",
    responses={404: {"description": "Note not found"}},
)
async def get_note(note_id: str, service: NoteService = Depends(get_note_service)) -> NoteOut:
    return NoteOut.from_note(require_found(service.get_note_by_id(note_id), "Note"))


# PUBLIC_INTERFACE
@router.patch(
    "/{note_id}",
    response_model=NoteOut,
    summary="Edit Note",
    description=(
        "Apply an edit right away and save it once the note has not been edited "
        "for the autosave delay (NOTE_SAVE_DEBOUNCE_SECONDS)."
    ),
    responses={404: {"description": "Note not found"}},
)
async def patch_note(note_id: str, payload: NoteUpdate, service: NoteService = Depends(get_note_service)) -> NoteOut:
    note = require_found(service.get_note_by_id(note_id), "Note")
    if payload.title is not None:
        note.update_title(payload.title)
    if payload.content is not None:
        note.update_content(payload.content)
    if not await service.update_note(note):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return NoteOut.from_note(require_found(service.get_note_by_id(note_id), "Note"))


# PUBLIC_INTERFACE
@router.delete(
    "/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Note",
    responses={
        204: {"description": "Note deleted"},
        404: {"description": "Note not found"},
    },
)
async def delete_note(note_id: str, service: NoteService = Depends(get_note_service)) -> Response:
    if not await service.delete_note(note_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
