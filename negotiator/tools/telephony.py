"""
Outbound call placement.

``TwilioCallPlacer`` places a call whose voice document is fetched from our
prompt URL and whose status events are posted back to the webhook. Any
provider problem surfaces as ``TelephonyError`` so the dialer can fall back
to simulated progression.
"""

import asyncio
import logging
from typing import Optional, Protocol

from requests.exceptions import RequestException
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from negotiator.config import TelephonyConfig, settings
from negotiator.errors import TelephonyError

logger = logging.getLogger(__name__)

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]


class CallPlacer(Protocol):
    async def place_call(
        self, to_number: str, voice_document_url: str, status_callback_url: str
    ) -> str: ...


class TwilioCallPlacer:
    """Places calls through the Twilio REST API."""

    def __init__(
        self, config: TelephonyConfig = settings.telephony, client: Optional[Client] = None
    ) -> None:
        self._config = config
        self._client = client
        if self._client is None and config.configured:
            self._client = Client(config.account_sid, config.auth_token)
            logger.info("Twilio client initialized")
        elif self._client is None:
            logger.warning("Twilio credentials not configured; calls will be simulated")

    async def place_call(
        self, to_number: str, voice_document_url: str, status_callback_url: str
    ) -> str:
        """
        Place an outbound call.

        Returns:
            The provider's call SID.

        Raises:
            TelephonyError: If the client is not configured or the provider fails.
        """
        if self._client is None:
            raise TelephonyError("Telephony provider not configured")

        try:
            call = await asyncio.to_thread(
                self._client.calls.create,
                to=to_number,
                from_=self._config.from_number,
                url=voice_document_url,
                status_callback=status_callback_url,
                status_callback_method="POST",
                status_callback_event=STATUS_CALLBACK_EVENTS,
            )
        except TwilioException as exc:
            raise TelephonyError(
                f"Twilio error: {exc}", details={"to": to_number}
            ) from exc
        except RequestException as exc:
            raise TelephonyError(
                f"Twilio unreachable: {exc}", details={"to": to_number}
            ) from exc

        logger.info("Call placed to %s: %s", to_number, call.sid)
        return call.sid
