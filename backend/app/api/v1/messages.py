"""
FastAPI route: Outbound message submission and status endpoints.

Provides endpoints to:
    POST /api/v1/messages                   — submit one message
    POST /api/v1/messages/batch             — submit many messages
    GET  /api/v1/messages                   — list records (filter by status)
    GET  /api/v1/messages/stats             — queue / capacity / provider view
    GET  /api/v1/messages/{id}/status       — delivery record for one message
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from backend.app.core.errors import NotFoundError, ValidationError
from backend.app.messaging.dispatcher import MessageDispatcher
from backend.app.messaging.models import DeliveryStatus

router = APIRouter(prefix="/api/v1/messages", tags=["message-dispatch"])


# ---------------------------------------------------------------------------
# Request / Response Schemas
# ---------------------------------------------------------------------------

class SubmitRequest(BaseModel):
    """Queue a single message for delivery."""
    message_id: str = Field(
        ..., min_length=1, max_length=512,
        description="Caller-supplied unique identifier",
        examples=["user@example.com"],
    )


class BatchSubmitRequest(BaseModel):
    """Queue several messages; duplicates are reported, not rejected."""
    message_ids: List[str] = Field(
        ..., min_length=1, max_length=1000,
        examples=[["a@example.com", "b@example.com"]],
    )


class SubmitResponse(BaseModel):
    """Outcome of one submission."""
    message_id: str
    accepted: bool = Field(
        ..., description="False when the message already had a record",
    )
    record: Dict[str, Any]


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def get_dispatcher(request: Request) -> MessageDispatcher:
    """Dispatcher installed on app.state by the lifespan handler."""
    return request.app.state.dispatcher


def _parse_status(status_str: str) -> DeliveryStatus:
    """Parse a status string to DeliveryStatus enum."""
    try:
        return DeliveryStatus(status_str.lower())
    except ValueError:
        valid = [s.value for s in DeliveryStatus]
        raise ValidationError(
            f"Invalid status '{status_str}'. Must be one of: {valid}",
            field="status",
        )


def _submit(dispatcher: MessageDispatcher, message_id: str) -> SubmitResponse:
    accepted = dispatcher.submit(message_id)
    record = dispatcher.get_status(message_id)
    return SubmitResponse(
        message_id=message_id,
        accepted=accepted,
        record=record.to_dict() if record else {},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=SubmitResponse,
    status_code=202,
    summary="Submit a message for delivery",
    description=(
        "Creates a pending record and queues the message. Re-submitting an "
        "identifier that already has a record is a no-op (accepted=false)."
    ),
)
async def submit_message(
    request: SubmitRequest,
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    return _submit(dispatcher, request.message_id)


@router.post(
    "/batch",
    response_model=List[SubmitResponse],
    status_code=202,
    summary="Submit several messages for delivery",
)
async def submit_batch(
    request: BatchSubmitRequest,
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    return [_submit(dispatcher, mid) for mid in request.message_ids]


@router.get(
    "",
    summary="List delivery records",
    description="All records in submission order, optionally filtered by status.",
)
async def list_messages(
    status: Optional[str] = None,
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    wanted = _parse_status(status) if status else None
    records = dispatcher.ledger.records(wanted)
    return {
        "count": len(records),
        "records": [r.to_dict() for r in records],
    }


@router.get(
    "/stats",
    summary="Dispatcher statistics",
    description="Queue depth, in-flight chains, capacity and provider failover state.",
)
async def dispatch_stats(
    include_queue: bool = False,
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    return dispatcher.stats(include_queue=include_queue).to_dict()


@router.get(
    "/{message_id}/status",
    summary="Get message delivery status",
)
async def get_message_status(
    message_id: str,
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    record = dispatcher.get_status(message_id)
    if record is None:
        raise NotFoundError("Message", message_id=message_id)
    return record.to_dict()
