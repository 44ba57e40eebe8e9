from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from ..errors import Result
from ..schemas import TodoCreate, TodoOut, TodoUpdate
from ..service import TodoService

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
)

_REF_TEMPLATE = "#/components/schemas/{model}"

_ERROR_RESPONSES = {
    400: {"description": "Invalid id or request body"},
    404: {"description": "Todo not found"},
    500: {"description": "Storage failure"},
}


def get_service(request: Request) -> TodoService:
    """
    Dependency returning the service bound to the application lifespan.
    """
    return request.app.state.todo_service


# PUBLIC_INTERFACE
def render(result: Result, success_status: int = status.HTTP_200_OK) -> Response:
    """
    Translate a dispatcher Result into an HTTP response.

    Errors become `{"error": message}` with the status from the error table;
    successes are serialized through TodoOut.
    """
    if not result.ok:
        return JSONResponse(status_code=result.status_code, content={"error": result.message})
    if success_status == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    value = result.value
    if isinstance(value, list):
        content = [TodoOut.model_validate(v) for v in value]
    else:
        content = TodoOut.model_validate(value)
    return JSONResponse(status_code=success_status, content=jsonable_encoder(content))


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description=(
        "List todos, newest first, with optional filters.\n\n"
        "Query parameters:\n"
        "- completed: filter by completion status (true/false)\n"
        "- priority: filter by priority (low, medium, high)\n"
        "- search: case-insensitive substring match on title or description"
    ),
    responses={200: {"description": "List retrieved successfully"}, 500: _ERROR_RESPONSES[500]},
)
def list_todos(request: Request, service: TodoService = Depends(get_service)) -> Response:
    """
    List todos with filters.
    """
    return render(service.list_todos(request.query_params))


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses=_ERROR_RESPONSES,
)
def get_todo(todo_id: str, service: TodoService = Depends(get_service)) -> Response:
    """
    Retrieve a single Todo item by its ID.
    """
    return render(service.get_todo(todo_id))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item and return the created resource.",
    responses={201: {"description": "Todo created successfully"}, **_ERROR_RESPONSES},
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": TodoCreate.model_json_schema(ref_template=_REF_TEMPLATE)}},
        }
    },
)
def create_todo(payload: Any = Body(default=None), service: TodoService = Depends(get_service)) -> Response:
    """
    Create a new Todo.
    """
    return render(service.create_todo(payload), status.HTTP_201_CREATED)


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Partially update a Todo item. Only fields present in the body are changed; "
        "a body with no known fields returns the item unchanged."
    ),
    responses=_ERROR_RESPONSES,
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": TodoUpdate.model_json_schema(ref_template=_REF_TEMPLATE)}},
        }
    },
)
def update_todo(
    todo_id: str,
    payload: Any = Body(default=None),
    service: TodoService = Depends(get_service),
) -> Response:
    """
    Partial update of a Todo item.
    """
    # A missing body is treated as an empty update.
    return render(service.update_todo(todo_id, {} if payload is None else payload))


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}/toggle",
    response_model=TodoOut,
    summary="Toggle Todo",
    description="Flip the completion status of a Todo item.",
    responses=_ERROR_RESPONSES,
)
def toggle_todo(todo_id: str, service: TodoService = Depends(get_service)) -> Response:
    return render(service.toggle_todo(todo_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item by ID.",
    responses={204: {"description": "Todo deleted"}, **_ERROR_RESPONSES},
)
def delete_todo(todo_id: str, service: TodoService = Depends(get_service)) -> Response:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    return render(service.delete_todo(todo_id), status.HTTP_204_NO_CONTENT)
