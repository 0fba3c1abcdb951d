"""
Call initiation and telephony-facing endpoints.

Voice endpoints always answer with a TwiML document: when the call cannot
be found or anything else goes wrong the caller hears an apology and the
call ends. The status webhook always answers 200 so the provider does not
retry.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Response

from negotiator.api.dependencies import get_services
from negotiator.calls.reconciler import StatusEvent
from negotiator.container import Services
from negotiator.errors import NegotiatorError
from negotiator.schemas.api_schema import CallInitiateRequest, CallInitiateResponse
from negotiator.schemas.session_schema import NegotiationStage
from negotiator.voice.renderer import VoiceDialogDocument

logger = logging.getLogger(__name__)

router = APIRouter()

TWIML_MEDIA_TYPE = "application/xml"


def _twiml_response(services: Services, document: VoiceDialogDocument) -> Response:
    return Response(content=services.renderer.to_twiml(document), media_type=TWIML_MEDIA_TYPE)


def _parse_stage(stage: str) -> Optional[NegotiationStage]:
    try:
        return NegotiationStage(stage)
    except ValueError:
        return None


def _parse_duration(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Unparsable CallDuration %r", raw)
        return None


@router.post("/initiate", response_model=CallInitiateResponse)
async def initiate_call(payload: CallInitiateRequest, services: Services = Depends(get_services)):
    call = await services.dialer.start_call(
        payload.session_id, payload.user_budget, vendor_id=payload.vendor_id
    )
    return CallInitiateResponse(call=call, call_sid=call.provider_call_sid or call.id)


@router.api_route("/twiml/{session_id}/{call_id}/{stage}", methods=["GET", "POST"])
@router.api_route("/twiml/{session_id}/{call_id}/{stage}/{attempt}", methods=["GET", "POST"])
async def voice_prompt(
    session_id: str,
    call_id: str,
    stage: str,
    attempt: int = 0,
    services: Services = Depends(get_services),
):
    parsed = _parse_stage(stage)
    if parsed is None:
        logger.warning("Unknown stage '%s' requested", stage)
        return _twiml_response(services, services.renderer.fallback())
    try:
        document = await services.driver.current_prompt(session_id, call_id, parsed, attempt)
    except NegotiatorError as exc:
        logger.warning("Prompt for %s/%s failed: %s", session_id, call_id, exc.message)
        document = services.renderer.fallback()
    except Exception:
        logger.exception("Prompt rendering failed for %s/%s", session_id, call_id)
        document = services.renderer.fallback()
    return _twiml_response(services, document)


@router.post("/gather/{session_id}/{call_id}/{stage}")
@router.post("/gather/{session_id}/{call_id}/{stage}/{attempt}")
async def voice_gather(
    session_id: str,
    call_id: str,
    stage: str,
    attempt: int = 0,
    speech: str = Form(default="", alias="SpeechResult"),
    digits: str = Form(default="", alias="Digits"),
    services: Services = Depends(get_services),
):
    parsed = _parse_stage(stage)
    if parsed is None:
        logger.warning("Gather for unknown stage '%s'", stage)
        return _twiml_response(services, services.renderer.fallback())
    try:
        document = await services.driver.submit_input(
            session_id, call_id, parsed, speech=speech, digits=digits
        )
    except NegotiatorError as exc:
        logger.warning("Gather for %s/%s failed: %s", session_id, call_id, exc.message)
        document = services.renderer.fallback()
    except Exception:
        logger.exception("Gather handling failed for %s/%s", session_id, call_id)
        document = services.renderer.fallback()
    return _twiml_response(services, document)


@router.post("/webhook/{call_ref}")
async def status_webhook(
    call_ref: str,
    call_status: str = Form(default="", alias="CallStatus"),
    call_duration: Optional[str] = Form(default=None, alias="CallDuration"),
    answered_by: Optional[str] = Form(default=None, alias="AnsweredBy"),
    services: Services = Depends(get_services),
):
    """Provider status callback, addressed by call id or, for older calls, session id."""
    session_id = services.store.session_for_call(call_ref)
    call_id = call_ref
    if session_id is None:
        session = services.store.get_session(call_ref)
        if session is None or session.current_call is None:
            logger.info("Status '%s' for unknown call %s", call_status, call_ref)
            return {"success": True, "applied": False}
        session_id, call_id = session.id, session.current_call.id

    event = StatusEvent(
        status=call_status,
        duration_seconds=_parse_duration(call_duration),
        answered_by=answered_by,
    )
    try:
        result = await services.reconciler.apply(session_id, call_id, event)
    except Exception:
        logger.exception("Status callback failed for call %s", call_id)
        return {"success": True, "applied": False}
    return {"success": True, "applied": result.applied}
