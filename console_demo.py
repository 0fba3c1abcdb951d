"""
Offline console demo: plays the vendor's side of a negotiation call.

Uses the real state machine, negotiation driver, renderer, reconciler and
payment coordinator. No telephony provider and no network calls; you type
what the vendor says (or a keypad digit prefixed with '#').

Usage:
    python console_demo.py
    python console_demo.py --scenario counter
    python console_demo.py --scenario silent --budget 7500
"""

import argparse
import asyncio
from typing import Optional

from negotiator.calls.reconciler import StatusEvent
from negotiator.config import settings
from negotiator.container import Services, build_services
from negotiator.schemas.session_schema import (
    TERMINAL_STAGES,
    Call,
    ConversationState,
    MessageRole,
)
from negotiator.tools.vendors import builtin_vendors
from negotiator.voice.renderer import VoiceDialogDocument

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class OfflineCallPlacer:
    """Never dials; the console plays the vendor instead."""

    async def place_call(self, to_number: str, voice_document_url: str,
                         status_callback_url: str) -> str:
        return "console"


class ConsoleSession:
    """One simulated vendor call in the terminal."""

    # Vendor turns; "" is silence, "#1" is a keypad press.
    SCENARIOS: dict[str, list[str]] = {
        "agree": ["haan ji", "3 saree 9000", "#1"],
        "counter": ["#1", "3 saaree 9000", "nahi", "nahi, 9500 se kam nahi"],
        "accept": ["#1", "2 saree", "11000", "theek hai, chalega"],
        "decline": ["nahi, saree khatam ho gayi"],
        "silent": ["#1", "", "", ""],
    }

    MAX_INPUT_LENGTH = 200

    def __init__(self, budget: int = settings.negotiation.default_initial_price) -> None:
        self.services: Services = build_services(placer=OfflineCallPlacer())
        self.budget = budget
        self.session_id = ""
        self.call_id = ""

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Agent]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def start(self) -> VoiceDialogDocument:
        store = self.services.store
        session = store.create_session()
        self.session_id = session.id
        vendor = builtin_vendors()[0]
        store.set_vendors(session.id, [vendor])
        await self.services.assistant.select_vendor(session.id, vendor.id)

        call = Call(
            vendor_id=vendor.id,
            conversation_state=ConversationState(
                quantity=settings.negotiation.default_quantity,
                initial_price=self.budget,
            ),
        )
        store.set_current_call(session.id, call)
        self.call_id = call.id

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  VENDOR CALL NEGOTIATOR - Console Demo{RESET}")
        print(f"{BOLD}  Vendor: {vendor.name}  Budget: {self.budget}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()
        stage = call.conversation_state.stage
        return await self.services.driver.current_prompt(self.session_id, self.call_id, stage)

    async def vendor_turn(self, text: str) -> VoiceDialogDocument:
        text = text[: self.MAX_INPUT_LENGTH]
        speech, digits = ("", text[1:]) if text.startswith("#") else (text, "")
        call = self._call()
        return await self.services.driver.submit_input(
            self.session_id, self.call_id, call.conversation_state.stage,
            speech=speech, digits=digits,
        )

    def show(self, document: VoiceDialogDocument) -> None:
        self.agent_say(document.prompt)
        state = self._call().conversation_state
        self.system_log(
            f"Stage: {state.stage.value}  attempts: {state.attempts}  "
            f"vendor: {state.vendor_price}  final: {state.final_price}"
        )

    async def finish(self, duration: int = 90) -> None:
        await self.services.reconciler.apply(
            self.session_id, self.call_id, StatusEvent(status="completed", duration_seconds=duration)
        )
        session = self.services.store.snapshot(self.session_id)
        call = session.current_call
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Call status: {call.status.value}  price: {call.negotiated_price}{RESET}")
        print(f"{BOLD}  Journey: {session.journey_status.value}{RESET}")
        if session.transaction:
            txn = session.transaction
            print(
                f"{BOLD}  Transaction: {txn.status.value} {txn.amount:.0f} {txn.currency} "
                f"({txn.total_source_amount} {txn.source_currency}){RESET}"
            )
        for message in session.messages:
            if message.role == MessageRole.ASSISTANT:
                print(f"{YELLOW}  [Assistant] {message.content}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run_scenario(self, scenario: str) -> None:
        steps = self.SCENARIOS.get(scenario)
        if steps is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        self.show(await self.start())
        for step in steps:
            if self._call().conversation_state.stage in TERMINAL_STAGES:
                break
            print(f"\n{BLUE}[Vendor] {RESET}{step or DIM + '(silence)' + RESET}")
            self.show(await self.vendor_turn(step))
        await self.finish()

    async def run(self) -> None:
        self.show(await self.start())
        while self._call().conversation_state.stage not in TERMINAL_STAGES:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Vendor] {RESET}")).strip()
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Call ended.{RESET}")
                return
            self.show(await self.vendor_turn(user_input))
        await self.finish()

    def _call(self) -> Call:
        return self.services.store.require_call(self.session_id, self.call_id)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline negotiation console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted vendor instead of interactive mode",
    )
    parser.add_argument("--budget", type=int, default=settings.negotiation.default_initial_price)
    args = parser.parse_args(argv)

    session = ConsoleSession(budget=args.budget)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
