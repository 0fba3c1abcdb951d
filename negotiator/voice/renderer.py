"""
Voice-dialog documents for each negotiation stage.

The renderer decides *what* the call hears next: a prompt wrapped in a
gather, a retry redirect, or a closing line and hang-up. Documents are plain
dataclasses so the decision can be tested without XML; ``to_twiml`` turns
one into the markup the telephony provider executes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from twilio.twiml.voice_response import Gather, VoiceResponse

from negotiator.config import NegotiationConfig, VoiceConfig, settings
from negotiator.prompts.dialog_scripts import (
    APOLOGY_PROMPT,
    DIALOG_SCRIPTS,
    ERROR_PROMPT,
    fill_template,
)
from negotiator.schemas.session_schema import (
    TERMINAL_STAGES,
    ConversationState,
    NegotiationStage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatherDirective:
    """Collect speech or keypad input and post it to ``action_url``."""
    action_url: str
    timeout: int
    num_digits: int
    language: str
    input: str = "speech dtmf"
    method: str = "POST"


@dataclass(frozen=True)
class VoiceDialogDocument:
    """One response to the telephony provider."""
    prompt: str
    gather: Optional[GatherDirective] = None
    fallback_prompt: Optional[str] = None
    redirect_url: Optional[str] = None
    hangup: bool = False

    def to_twiml(self, voice: str = settings.voice.say_voice,
                 language: str = settings.voice.language) -> str:
        response = VoiceResponse()
        if self.gather is not None:
            gather = Gather(
                input=self.gather.input,
                action=self.gather.action_url,
                method=self.gather.method,
                timeout=self.gather.timeout,
                num_digits=self.gather.num_digits,
                language=self.gather.language,
            )
            gather.say(self.prompt, voice=voice, language=language)
            response.append(gather)
        else:
            response.say(self.prompt, voice=voice, language=language)

        if self.fallback_prompt:
            response.say(self.fallback_prompt, voice=voice, language=language)
        if self.redirect_url:
            response.redirect(self.redirect_url, method="POST")
        if self.hangup:
            response.hangup()
        return str(response)


class VoiceResponseRenderer:
    """Maps (stage, state, attempt) to the next voice-dialog document."""

    def __init__(
        self,
        base_url: str = settings.telephony.public_base_url,
        voice_config: VoiceConfig = settings.voice,
        negotiation_config: NegotiationConfig = settings.negotiation,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._voice = voice_config
        self._max_attempts = negotiation_config.max_attempts

    def prompt_url(self, session_id: str, call_id: str,
                   stage: NegotiationStage, attempt: int = 0) -> str:
        return f"{self._base_url}/api/calls/twiml/{session_id}/{call_id}/{stage.value}/{attempt}"

    def gather_url(self, session_id: str, call_id: str,
                   stage: NegotiationStage, attempt: int = 0) -> str:
        return f"{self._base_url}/api/calls/gather/{session_id}/{call_id}/{stage.value}/{attempt}"

    def status_callback_url(self, call_id: str) -> str:
        return f"{self._base_url}/api/calls/webhook/{call_id}"

    def render(
        self,
        session_id: str,
        call_id: str,
        stage: NegotiationStage,
        state: Optional[ConversationState],
        attempt: int = 0,
    ) -> VoiceDialogDocument:
        """
        Build the document for ``stage``.

        Terminal stages speak their closing line and hang up. Non-terminal
        stages gather input, unless ``attempt`` has reached the retry limit,
        in which case the caller hears an apology and the call ends.
        """
        script = DIALOG_SCRIPTS[stage]
        prompt = fill_template(script.prompt, state)

        if stage in TERMINAL_STAGES:
            return VoiceDialogDocument(prompt=prompt, hangup=True)

        if attempt >= self._max_attempts:
            logger.info("Retry limit reached at '%s', ending call %s", stage.value, call_id)
            return VoiceDialogDocument(prompt=APOLOGY_PROMPT, hangup=True)

        return VoiceDialogDocument(
            prompt=prompt,
            gather=GatherDirective(
                action_url=self.gather_url(session_id, call_id, stage, attempt),
                timeout=self._voice.gather_timeout_sec,
                num_digits=self._voice.gather_num_digits,
                language=self._voice.language,
            ),
            fallback_prompt=fill_template(script.fallback, state) if script.fallback else None,
            redirect_url=self.prompt_url(session_id, call_id, stage, attempt + 1),
        )

    def fallback(self) -> VoiceDialogDocument:
        """Apology and hang-up for when the call's state cannot be found."""
        return VoiceDialogDocument(prompt=ERROR_PROMPT, hangup=True)

    def to_twiml(self, document: VoiceDialogDocument) -> str:
        return document.to_twiml(voice=self._voice.say_voice, language=self._voice.language)
