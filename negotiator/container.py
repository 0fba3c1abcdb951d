"""
Service wiring.

``build_services`` creates one instance of every service around a shared
store. Tests and the console demo pass their own collaborators (a scripted
call placer, a seeded RNG) through the keyword arguments.
"""

import random
from dataclasses import dataclass
from typing import Optional

from negotiator.calls.dialer import CallDialer
from negotiator.calls.negotiation import NegotiationDriver
from negotiator.calls.reconciler import CallStatusReconciler
from negotiator.calls.simulation import CallSimulator
from negotiator.config import AppConfig, settings
from negotiator.conversation.state_machine import NegotiationStateMachine
from negotiator.payments.coordinator import PaymentCoordinator
from negotiator.services.assistant import ShoppingAssistant
from negotiator.store.session_store import SessionStore
from negotiator.tools.chat import ChatResponder
from negotiator.tools.settlement import CurrencyConverter, PayoutProvider, WalletTransfer
from negotiator.tools.telephony import CallPlacer, TwilioCallPlacer
from negotiator.tools.vendors import PlacesSearch, VendorDirectory
from negotiator.voice.renderer import VoiceResponseRenderer


@dataclass
class Services:
    config: AppConfig
    store: SessionStore
    renderer: VoiceResponseRenderer
    driver: NegotiationDriver
    payments: PaymentCoordinator
    reconciler: CallStatusReconciler
    simulator: CallSimulator
    dialer: CallDialer
    assistant: ShoppingAssistant


def build_services(
    config: AppConfig = settings,
    *,
    placer: Optional[CallPlacer] = None,
    places: Optional[PlacesSearch] = None,
    responder: Optional[ChatResponder] = None,
    converter: Optional[CurrencyConverter] = None,
    wallet: Optional[WalletTransfer] = None,
    payouts: Optional[PayoutProvider] = None,
    rng: Optional[random.Random] = None,
) -> Services:
    store = SessionStore()
    renderer = VoiceResponseRenderer(
        config.telephony.public_base_url, config.voice, config.negotiation
    )
    payments = PaymentCoordinator(
        store, converter, wallet, payouts, config.payment, config.telephony
    )
    reconciler = CallStatusReconciler(store, payments, config.reconciler)
    simulator = CallSimulator(store, reconciler, config.simulation, rng)
    dialer = CallDialer(
        store,
        placer or TwilioCallPlacer(config.telephony),
        renderer,
        simulator,
        config.negotiation,
    )
    assistant = ShoppingAssistant(
        store,
        VendorDirectory(places, config.journey, config.telephony),
        simulator,
        responder,
    )
    return Services(
        config=config,
        store=store,
        renderer=renderer,
        driver=NegotiationDriver(
            store, renderer, NegotiationStateMachine(config=config.negotiation)
        ),
        payments=payments,
        reconciler=reconciler,
        simulator=simulator,
        dialer=dialer,
        assistant=assistant,
    )
