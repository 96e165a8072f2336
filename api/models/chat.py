"""Pydantic models for the chat API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """One user message for a session."""
    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(min_length=1, max_length=128)
    message: str = Field(min_length=1, max_length=4000)


class EntityUpdateRequest(BaseModel):
    """Structured entity values, usually submitted from a widget."""

    entities: dict[str, Any]


class WidgetModel(BaseModel):
    type: str
    payload: dict[str, Any] = {}


class PlanSectionModel(BaseModel):
    title: str
    content: str
    items: list[str] = []


class PlanModel(BaseModel):
    title: str
    summary: str
    sections: list[PlanSectionModel] = []
    widgets: list[WidgetModel] = []
    recommendations: list[str] = []


class ChatResponse(BaseModel):
    """Serialized ProcessResult."""

    session_id: str
    intent: str
    action: str
    confidence: float
    source: str  # "llm" or "local"
    entities: dict[str, Any]
    response: str
    widget: WidgetModel | None = None
    workflow_domain: str | None = None
    workflow_phase: str | None = None
    workflow_widgets: list[WidgetModel] = []
    plan: PlanModel | None = None
    needs_more_info: bool = False
    clarification_question: str | None = None


class EntityUpdateResponse(BaseModel):
    session_id: str
    entities: dict[str, Any]
    workflow_domain: str | None = None
    workflow_phase: str | None = None
    workflow_widgets: list[WidgetModel] = []
    plan: PlanModel | None = None
    is_complete: bool = False


class HealthResponse(BaseModel):
    status: str
    llm_available: bool
    sessions: int
