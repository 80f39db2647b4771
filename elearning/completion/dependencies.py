"""FastAPI dependencies for the completion dispatcher."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .dispatcher import CompletionDispatcher


async def get_completion_dispatcher(request: Request) -> CompletionDispatcher:
    dispatcher = getattr(request.app.state, "completion_dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Completion dispatcher not available",
        )
    return dispatcher


CompletionDispatcherDep = Annotated[
    CompletionDispatcher, Depends(get_completion_dispatcher)
]
