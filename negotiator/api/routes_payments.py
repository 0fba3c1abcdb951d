"""Payment approval and settlement endpoints."""

from fastapi import APIRouter, Depends

from negotiator.api.dependencies import get_services
from negotiator.container import Services
from negotiator.schemas.api_schema import (
    PaymentDecisionRequest,
    PaymentProcessRequest,
    TransactionResponse,
)

router = APIRouter()


@router.post("/approve", response_model=TransactionResponse)
async def approve_payment(
    payload: PaymentDecisionRequest, services: Services = Depends(get_services)
):
    transaction = await services.payments.approve(payload.session_id)
    return TransactionResponse(transaction=transaction)


@router.post("/reject", response_model=TransactionResponse)
async def reject_payment(
    payload: PaymentDecisionRequest, services: Services = Depends(get_services)
):
    transaction = await services.payments.reject(payload.session_id)
    return TransactionResponse(transaction=transaction)


@router.post("/process", response_model=TransactionResponse)
async def process_payment(
    payload: PaymentProcessRequest, services: Services = Depends(get_services)
):
    transaction = await services.payments.process(
        payload.session_id, amount=payload.amount, vendor_phone=payload.vendor_phone
    )
    return TransactionResponse(transaction=transaction)
