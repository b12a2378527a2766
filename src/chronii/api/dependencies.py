from __future__ import annotations

from fastapi import Depends, Request

from ..context import AppContext
from ..services import NoteService, TimerService, TodoService


# PUBLIC_INTERFACE
def get_context(request: Request) -> AppContext:
    """The application context created by create_app()."""
    return request.app.state.context


def get_todo_service(context: AppContext = Depends(get_context)) -> TodoService:
    return context.todos


def get_timer_service(context: AppContext = Depends(get_context)) -> TimerService:
    return context.timers


def get_note_service(context: AppContext = Depends(get_context)) -> NoteService:
    return context.notes
