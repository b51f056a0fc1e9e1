"""FastAPI REST API server for Family Connect.

This module provides HTTP endpoints for a family's shared calendar:
events, tasks, members and their SMS reminders. Every change is saved
as a whole family document and reschedules the item's reminders.

IMPORTANT: LookupError maps to 404, ValueError to 400.
"""

from typing import List

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import schemas
from background_worker import ReminderDispatcher
from config import settings
from family_service import FamilyService, generate_family_id, validate_family_id
from logger_config import setup_logger
from relay_client import RelayClient, connection_hint, get_relay_client
from state_store import get_store

logger = setup_logger(__name__, 'api.log')

# Create FastAPI application
app = FastAPI(
    title="Family Connect API",
    description="Family calendar, tasks and SMS reminders",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service() -> FamilyService:
    return FamilyService(get_store())


def get_dispatcher() -> ReminderDispatcher:
    return ReminderDispatcher(get_store(), get_relay_client())


@app.exception_handler(LookupError)
async def not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def bad_request_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/")
def root():
    """Root endpoint - service information"""
    return {
        "service": "Family Connect API",
        "version": "1.0.0",
        "status": "healthy",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "families": "/families"
        }
    }


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "service": "family_connect",
        "database": settings.DATABASE_URL.split("://")[0],
        "mirror_enabled": bool(settings.MIRROR_DATABASE_URL),
    }


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------

@app.post("/families", response_model=schemas.FamilyCreated, status_code=201)
def create_family():
    """Generate a new 6-digit family id.

    Nothing is stored until the first change is saved.
    """
    return {"family_id": generate_family_id()}


@app.get("/families/{family_id}", response_model=schemas.FamilyState)
def get_family(family_id: str, service: FamilyService = Depends(get_service)):
    """Full family document. A new id returns an empty family."""
    return service.get_state(family_id)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@app.post("/families/{family_id}/events", response_model=schemas.Event, status_code=201)
def create_event(
    family_id: str,
    event: schemas.EventCreate,
    service: FamilyService = Depends(get_service)
):
    """Create an event.

    Request body example:
    ```json
    {
        "title": "Soccer practice",
        "date": "2024-01-10T18:00:00Z",
        "reminders": {
            "enabled": true,
            "times": ["1 day before", "2 hours before"],
            "member_ids": ["<member id>"]
        }
    }
    ```
    """
    return service.create_event(family_id, event)


@app.put("/families/{family_id}/events/{event_id}", response_model=schemas.Event)
def update_event(
    family_id: str,
    event_id: str,
    updates: schemas.EventUpdate,
    service: FamilyService = Depends(get_service)
):
    """Update an event. Only provided fields are changed."""
    return service.update_event(family_id, event_id, updates)


@app.delete("/families/{family_id}/events/{event_id}")
def delete_event(family_id: str, event_id: str, service: FamilyService = Depends(get_service)):
    service.delete_event(family_id, event_id)
    return {"message": "Event deleted successfully", "event_id": event_id}


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@app.post("/families/{family_id}/tasks", response_model=schemas.Task, status_code=201)
def create_task(
    family_id: str,
    task: schemas.TaskCreate,
    service: FamilyService = Depends(get_service)
):
    """Create a task. Reminders are scheduled only when due_date is set."""
    return service.create_task(family_id, task)


@app.put("/families/{family_id}/tasks/{task_id}", response_model=schemas.Task)
def update_task(
    family_id: str,
    task_id: str,
    updates: schemas.TaskUpdate,
    service: FamilyService = Depends(get_service)
):
    return service.update_task(family_id, task_id, updates)


@app.post("/families/{family_id}/tasks/{task_id}/toggle", response_model=schemas.Task)
def toggle_task(family_id: str, task_id: str, service: FamilyService = Depends(get_service)):
    """Flip a task between done and not done."""
    return service.toggle_task(family_id, task_id)


@app.delete("/families/{family_id}/tasks/{task_id}")
def delete_task(family_id: str, task_id: str, service: FamilyService = Depends(get_service)):
    service.delete_task(family_id, task_id)
    return {"message": "Task deleted successfully", "task_id": task_id}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@app.post("/families/{family_id}/members", response_model=schemas.Member, status_code=201)
def add_member(
    family_id: str,
    member: schemas.MemberCreate,
    service: FamilyService = Depends(get_service)
):
    """Add a family member. Phone and carrier must be given together."""
    return service.add_member(family_id, member)


@app.delete("/families/{family_id}/members/{member_id}")
def remove_member(family_id: str, member_id: str, service: FamilyService = Depends(get_service)):
    service.remove_member(family_id, member_id)
    return {"message": "Member removed successfully", "member_id": member_id}


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

@app.get("/families/{family_id}/reminders", response_model=List[schemas.ReminderRecord])
def list_reminders(family_id: str, service: FamilyService = Depends(get_service)):
    """Scheduled reminder records, soonest first."""
    state = service.get_state(family_id)
    return sorted(state.scheduled_reminders, key=lambda r: r.scheduled_time)


@app.post("/families/{family_id}/reminders/check", response_model=schemas.ScanResult)
async def check_reminders(family_id: str, dispatcher: ReminderDispatcher = Depends(get_dispatcher)):
    """Deliver this family's due reminders now instead of waiting for the worker."""
    return await dispatcher.scan_family(validate_family_id(family_id))


@app.post(
    "/families/{family_id}/{collection}/{item_id}/send-now",
    response_model=schemas.SendNowResult,
)
async def send_now(
    family_id: str,
    collection: str,
    item_id: str,
    body: schemas.SendNowRequest,
    dispatcher: ReminderDispatcher = Depends(get_dispatcher)
):
    """Text an event's or task's title to the chosen members right away.

    collection is "events" or "tasks".
    """
    item_types = {"events": "event", "tasks": "task"}
    if collection not in item_types:
        raise LookupError(f"Unknown collection {collection}")
    return await dispatcher.send_now(
        validate_family_id(family_id), item_types[collection], item_id, body.member_ids
    )


@app.post("/relay/test", response_model=schemas.RelayCheckResult)
async def check_relay_connection(relay: RelayClient = Depends(get_relay_client)):
    """Send a dummy reminder through the configured relay.

    A 200 here means the check ran; `success` says whether the relay accepted it.
    """
    result = await relay.test_connection()
    if result.success:
        message = "Connection successful! The relay is working."
    else:
        message = f"Connection failed: {result.error}"
    return schemas.RelayCheckResult(
        success=result.success,
        message=message,
        status_code=result.status_code,
        hint=connection_hint(result),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info"
    )
