"""Session snapshot, chat and vendor selection endpoints."""

from fastapi import APIRouter, Depends

from negotiator.api.dependencies import get_services
from negotiator.container import Services
from negotiator.schemas.api_schema import (
    ChatRequest,
    ChatResponse,
    VendorSelectRequest,
    VendorSelectResponse,
)
from negotiator.schemas.session_schema import Session

router = APIRouter()


@router.get("/session/{session_id}", response_model=Session)
async def get_session(session_id: str, services: Services = Depends(get_services)):
    services.store.require_session(session_id)
    async with services.store.lock(session_id):
        return services.store.snapshot(session_id)


@router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, services: Services = Depends(get_services)):
    turn = await services.assistant.handle_message(payload.message, payload.session_id)
    return ChatResponse(
        session_id=turn.session_id,
        message=turn.message,
        vendors=turn.vendors,
        journey_status=turn.journey_status,
    )


@router.post("/vendors/select", response_model=VendorSelectResponse)
async def select_vendor(payload: VendorSelectRequest, services: Services = Depends(get_services)):
    vendor = await services.assistant.select_vendor(payload.session_id, payload.vendor_id)
    return VendorSelectResponse(vendor=vendor)
