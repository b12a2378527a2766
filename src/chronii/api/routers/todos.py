from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from ...services import TodoService
from ..dependencies import get_todo_service
from ..schemas import CountOut, TodoCreate, TodoOut, TodoUpdate
from ..utils import paginate, pagination_envelope, require_found

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)

_SORT_FIELDS = {"created_at", "updated_at"}


class PaginationEnvelope(BaseModel):
    """
    Envelope for paginated list responses.
    """
    items: List[TodoOut] = Field(..., description="List of Todo items")
    total: int = Field(..., description="Total number of items matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


def _normalize_sort(sort: Optional[str], order: Optional[str]) -> str:
    normalized_sort = (sort or "-created_at").strip().lower()
    field = normalized_sort.lstrip("-")
    if field not in _SORT_FIELDS:
        field, normalized_sort = "created_at", "-created_at"
    if order:
        ord_norm = order.strip().lower()
        if ord_norm not in {"asc", "desc"}:
            raise HTTPException(status_code=400, detail="order must be 'asc' or 'desc'")
        normalized_sort = f"-{field}" if ord_norm == "desc" else field
    return normalized_sort


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item in the current store and return it.",
    responses={
        201: {"description": "Todo created successfully"},
        422: {"description": "Validation error"},
    },
)
async def create_todo(payload: TodoCreate, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    """
    Create a new Todo.
    """
    created = await service.add_todo(
        payload.title,
        description=payload.description,
        priority=payload.priority,
        tags=payload.tags,
        due_date=payload.due_date,
    )
    return TodoOut.from_todo(created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=PaginationEnvelope,
    summary="List Todos",
    description=(
        "List todos with optional filters and pagination.\n\n"
        "Query parameters:\n"
        "- limit: max number of items to return (0..1000)\n"
        "- offset: number of items to skip (>=0)\n"
        "- completed: filter by completion status\n"
        "- q: search query for title/description (case-insensitive substring match)\n"
        "- sort: one of created_at, -created_at, updated_at, -updated_at\n"
        "- order: asc or desc (if provided, it overrides the direction in sort)\n\n"
        "Returns a pagination envelope with items and total count."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
    },
)
async def list_todos(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    completed: Optional[bool] = Query(None, description="Filter by completion status"),
    q: Optional[str] = Query(None, description="Search text for title/description"),
    sort: Optional[str] = Query(
        "-created_at",
        description="Sort by field: created_at, -created_at, updated_at, -updated_at",
    ),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    service: TodoService = Depends(get_todo_service),
) -> PaginationEnvelope:
    """
    List cached todos with pagination and filters.
    """
    normalized_sort = _normalize_sort(sort, order)
    field = normalized_sort.lstrip("-")

    todos = service.todos
    if completed is not None:
        todos = [t for t in todos if t.is_completed == completed]
    search = q.strip().lower() if q and q.strip() else None
    if search:
        todos = [
            t for t in todos if search in t.title.lower() or search in (t.description or "").lower()
        ]
    todos.sort(key=lambda t: getattr(t, field), reverse=normalized_sort.startswith("-"))

    envelope = pagination_envelope(
        items=[TodoOut.from_todo(t) for t in paginate(todos, limit, offset)],
        total=len(todos),
        limit=limit,
        offset=offset,
    )
    return PaginationEnvelope(**envelope)


# PUBLIC_INTERFACE
@router.post(
    "/complete-all",
    response_model=CountOut,
    summary="Complete All Todos",
    description="Mark every incomplete todo as completed.",
)
async def complete_all(service: TodoService = Depends(get_todo_service)) -> CountOut:
    return CountOut(count=await service.mark_all_as_completed())


# PUBLIC_INTERFACE
@router.post(
    "/incomplete-all",
    response_model=CountOut,
    summary="Reopen All Todos",
    description="Mark every completed todo as incomplete.",
)
async def incomplete_all(service: TodoService = Depends(get_todo_service)) -> CountOut:
    return CountOut(count=await service.mark_all_as_incomplete())


# PUBLIC_INTERFACE
@router.delete(
    "/completed",
    response_model=CountOut,
    summary="Delete Completed Todos",
    description="Delete every completed todo and return how many were removed.",
)
async def delete_completed(service: TodoService = Depends(get_todo_service)) -> CountOut:
    return CountOut(count=await service.delete_completed_todos())


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
async def get_todo(todo_id: str, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    return TodoOut.from_todo(require_found(service.get_todo_by_id(todo_id), "Todo"))


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description="Partially update fields of a Todo item. Any change moves updated_at forward.",
    responses={
        200: {"description": "Todo updated"},
        404: {"description": "Todo not found"},
    },
)
async def patch_todo(todo_id: str, payload: TodoUpdate, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    """
    Partial update of a Todo item.
    """
    todo = require_found(service.get_todo_by_id(todo_id), "Todo")
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("title") is not None:
        todo.update_title(changes["title"])
    if "description" in changes:
        todo.update_description(changes["description"])
    if changes.get("completed") is not None and changes["completed"] != todo.is_completed:
        todo.toggle_completion()
    if changes.get("priority") is not None:
        todo.update_priority(changes["priority"])
    if changes.get("tags") is not None:
        todo.tags = list(changes["tags"])
        todo.touch()
    if "due_date" in changes:
        todo.update_due_date(changes["due_date"])

    if not await service.update_todo(todo):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return TodoOut.from_todo(require_found(service.get_todo_by_id(todo_id), "Todo"))


# PUBLIC_INTERFACE
@router.post(
    "/{todo_id}/toggle",
    response_model=TodoOut,
    summary="Toggle Todo",
    description="Flip the completion status of a Todo item.",
    responses={404: {"description": "Todo not found"}},
)
async def toggle_todo(todo_id: str, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    if not await service.toggle_todo_completion(todo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return TodoOut.from_todo(require_found(service.get_todo_by_id(todo_id), "Todo"))


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item by ID.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
async def delete_todo(todo_id: str, service: TodoService = Depends(get_todo_service)) -> Response:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    if not await service.delete_todo(todo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
