"""FastAPI web application for labelflow."""

from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from labelflow.database.database import get_db
from labelflow.engine.errors import CaseStateError, TransitionError
from labelflow.engine.state_machine import TransitionResult
from labelflow.models.case import Case, CaseStatus, CaseType
from labelflow.models.document import Document, DocumentCategory
from labelflow.models.entity import Entity
from labelflow.models.event import Event
from labelflow.models.case_factory import create_entity_base
from labelflow.models.task import Task, TaskStatus
from labelflow.services import case_commands
from labelflow.services.case_commands import CorrectivePlanOutcome
from labelflow.services.task_service import RecheckResult
from labelflow.services.workflow import Workflow, build_workflow

app = FastAPI(
    title="labelflow API",
    description="Certification case workflow: guarded transitions, tasks and an event log",
    version="0.1.0",
)


# Request models
class CreateEntityRequest(BaseModel):
    name: str = Field(..., min_length=1)
    evaluator_id: Optional[str] = None


class CreateCaseRequest(BaseModel):
    entity_id: str
    case_type: CaseType = CaseType.INITIAL


class TransitionRequest(BaseModel):
    target: CaseStatus
    transition_name: Optional[str] = None


class DocumentRequest(BaseModel):
    category: DocumentCategory
    storage_key: str = Field(..., min_length=1, description="Pointer into document storage")
    file_name: Optional[str] = None


class AuditDatesRequest(BaseModel):
    start_date: date
    end_date: date


class ScoreRequest(BaseModel):
    global_score: float = Field(..., ge=0.0, le=100.0)


class DecisionRequest(BaseModel):
    accepted: bool
    reason: Optional[str] = None


class EvaluatorAssignmentRequest(BaseModel):
    evaluator_id: str


class OpinionRequest(BaseModel):
    comment: Optional[str] = None


class CorrectivePlanReviewRequest(BaseModel):
    outcome: CorrectivePlanOutcome
    comment: Optional[str] = None


# Dependencies
def get_workflow(db: Session = Depends(get_db)) -> Workflow:
    """Workflow services bound to the request's session."""
    return build_workflow(db)


def get_actor_id(x_actor_id: str = Header(default="", alias="X-Actor-Id")) -> str:
    if not x_actor_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Actor-Id header")
    return x_actor_id


# Error translation
@app.exception_handler(TransitionError)
async def transition_error_handler(request: Request, exc: TransitionError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": type(exc).__name__, "guard": exc.guard, "message": exc.message},
    )


@app.exception_handler(CaseStateError)
async def case_state_error_handler(request: Request, exc: CaseStateError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": type(exc).__name__, "guard": None, "message": exc.message},
    )


def _http_error(e: ValueError) -> HTTPException:
    message = str(e)
    if "not found" in message:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _get_case_or_404(wf: Workflow, case_id: str) -> Case:
    case = wf.ctx.cases.get(case_id)
    if case is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Case {case_id} not found")
    return case


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


# Entities
@app.post("/entities", response_model=Entity, status_code=status.HTTP_201_CREATED)
def create_entity(request: CreateEntityRequest, wf: Workflow = Depends(get_workflow)):
    return wf.ctx.entities.create(create_entity_base(request.name, evaluator_id=request.evaluator_id))


@app.post("/entities/{entity_id}/documentary-review-ready", response_model=List[Case])
def documentary_review_ready(
    entity_id: str,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    """Declare the entity's documents ready for the audit."""
    try:
        return case_commands.mark_documentary_review_ready(wf, entity_id, actor_id)
    except ValueError as e:
        raise _http_error(e)


# Cases
@app.post("/cases", response_model=Case, status_code=status.HTTP_201_CREATED)
def create_case(
    request: CreateCaseRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    try:
        return case_commands.submit_case(wf, request.entity_id, request.case_type, actor_id)
    except ValueError as e:
        raise _http_error(e)


@app.get("/cases/{case_id}", response_model=Case)
def get_case(case_id: str, wf: Workflow = Depends(get_workflow)):
    return _get_case_or_404(wf, case_id)


@app.post("/cases/{case_id}/transition", response_model=TransitionResult)
def transition_case(
    case_id: str,
    request: TransitionRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    """Request an explicit transition. Rejections return 409 with the blocking guard."""
    _get_case_or_404(wf, case_id)
    return case_commands.transition_case(
        wf, case_id, request.target, actor_id, transition_name=request.transition_name
    )


@app.post("/cases/{case_id}/recheck", response_model=RecheckResult)
def recheck_case(
    case_id: str,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return wf.tasks.recheck_pending_tasks(case_id, actor_id)


@app.post("/cases/{case_id}/approve", response_model=Case)
def approve_case(
    case_id: str,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return case_commands.approve_case(wf, case_id, actor_id)


@app.post("/cases/{case_id}/evaluator", response_model=Case)
def assign_evaluator(
    case_id: str,
    request: EvaluatorAssignmentRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return case_commands.assign_evaluator(wf, case_id, request.evaluator_id, actor_id)


@app.post("/cases/{case_id}/evaluator-response", response_model=Case)
def evaluator_response(
    case_id: str,
    request: DecisionRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    try:
        return case_commands.record_evaluator_response(wf, case_id, request.accepted, actor_id, reason=request.reason)
    except ValueError as e:
        raise _http_error(e)


@app.put("/cases/{case_id}/audit-dates", response_model=Case)
def set_audit_dates(
    case_id: str,
    request: AuditDatesRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    try:
        return case_commands.set_audit_dates(wf, case_id, request.start_date, request.end_date, actor_id)
    except ValueError as e:
        raise _http_error(e)


@app.post("/cases/{case_id}/documents", response_model=Document, status_code=status.HTTP_201_CREATED)
def upload_document(
    case_id: str,
    request: DocumentRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    try:
        return case_commands.upload_document(
            wf, case_id, request.category, request.storage_key, actor_id, file_name=request.file_name
        )
    except ValueError as e:
        raise _http_error(e)


@app.put("/cases/{case_id}/score", response_model=Case)
def record_score(
    case_id: str,
    request: ScoreRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return case_commands.record_global_score(wf, case_id, request.global_score, actor_id)


@app.post("/cases/{case_id}/opinion", response_model=Case)
def transmit_opinion(
    case_id: str,
    request: OpinionRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return case_commands.transmit_evaluator_opinion(wf, case_id, actor_id, comment=request.comment)


@app.post("/cases/{case_id}/corrective-plan-review", response_model=Case)
def review_corrective_plan(
    case_id: str,
    request: CorrectivePlanReviewRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return case_commands.review_corrective_plan(wf, case_id, request.outcome, actor_id, comment=request.comment)


@app.post("/cases/{case_id}/authority-decision", response_model=Case)
def authority_decision(
    case_id: str,
    request: DecisionRequest,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    _get_case_or_404(wf, case_id)
    return case_commands.record_authority_decision(wf, case_id, request.accepted, actor_id, reason=request.reason)


@app.get("/cases/{case_id}/events", response_model=List[Event])
def list_case_events(case_id: str, wf: Workflow = Depends(get_workflow)):
    """Events of a case, newest first."""
    _get_case_or_404(wf, case_id)
    return wf.events.get_case_events(case_id)


@app.get("/cases/{case_id}/tasks", response_model=List[Task])
def list_case_tasks(
    case_id: str,
    task_status: Optional[TaskStatus] = None,
    wf: Workflow = Depends(get_workflow),
):
    _get_case_or_404(wf, case_id)
    return wf.tasks.list_tasks(case_id=case_id, status=task_status)


# Tasks
@app.post("/tasks/{task_id}/complete", response_model=Task)
def complete_task(
    task_id: str,
    wf: Workflow = Depends(get_workflow),
    actor_id: str = Depends(get_actor_id),
):
    """Complete a task manually and let the workflow advance."""
    try:
        return wf.tasks.complete_and_advance(task_id, actor_id)
    except ValueError as e:
        raise _http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
