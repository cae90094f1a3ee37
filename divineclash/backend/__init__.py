"""Backend package for Divine Clash encounters."""

from .config import BackendSettings, ClashSettings, load_clash_settings, load_settings
from .coordinator import EncounterCoordinator, can_transition
from .errors import (
    ClashError,
    InsufficientStones,
    InvalidAction,
    InvalidEncounter,
    InvalidPhase,
    UnknownParticipant,
)
from .ledger import PoolLedger
from .models import OverdriveRequest, Participant, ParticipantState, Phase, Stone
from .store import EncounterStore, InMemoryEncounterStore, create_store

__all__ = [
    "BackendSettings",
    "can_transition",
    "ClashError",
    "ClashSettings",
    "create_store",
    "EncounterCoordinator",
    "EncounterStore",
    "InMemoryEncounterStore",
    "InsufficientStones",
    "InvalidAction",
    "InvalidEncounter",
    "InvalidPhase",
    "load_clash_settings",
    "load_settings",
    "OverdriveRequest",
    "Participant",
    "ParticipantState",
    "Phase",
    "PoolLedger",
    "Stone",
    "UnknownParticipant",
]
