"""
API routes for chat turns and session management.

The orchestrator is created once per process and shared by every request;
sessions are isolated inside its SessionStore.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from api.models.chat import (
    ChatRequest,
    ChatResponse,
    EntityUpdateRequest,
    EntityUpdateResponse,
)
from planner.chat_adapter import ChatOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@lru_cache
def get_orchestrator() -> ChatOrchestrator:
    """Process-wide orchestrator (overridable in tests via dependency_overrides)."""
    return ChatOrchestrator()


Orchestrator = Annotated[ChatOrchestrator, Depends(get_orchestrator)]


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, orchestrator: Orchestrator) -> ChatResponse:
    """
    Process one user message.

    **Returns:** the assistant response, optional widget directive, workflow
    progress and, once the workflow completes, the generated plan.
    """
    result = await orchestrator.process(request.session_id, request.message)
    return ChatResponse(**result.to_dict())


@router.post("/sessions/{session_id}/entities", response_model=EntityUpdateResponse)
async def update_entities(
    session_id: str,
    request: EntityUpdateRequest,
    orchestrator: Orchestrator,
) -> EntityUpdateResponse:
    """
    Apply structured entity values (e.g. a submitted widget) to a session.

    Unknown keys and empty values are ignored.
    """
    result = orchestrator.update_entities(session_id, request.entities)
    workflow = result.workflow
    return EntityUpdateResponse(
        session_id=session_id,
        entities=result.entities,
        workflow_domain=workflow.domain,
        workflow_phase=workflow.phase,
        workflow_widgets=[widget.to_dict() for widget in workflow.widgets],
        plan=workflow.plan.to_dict() if workflow.plan else None,
        is_complete=workflow.is_complete,
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session(session_id: str, orchestrator: Orchestrator) -> Response:
    """Clear a session's conversation and workflow state. Idempotent."""
    orchestrator.reset(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
