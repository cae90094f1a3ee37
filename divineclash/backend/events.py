"""Events emitted by the coordinator and their wire form for the relay."""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Union

from .models import DamageResult, RevealedAllocation


class EventKind(str, Enum):
    ENCOUNTER_STARTED = "encounterStarted"
    ALLOCATION_UPDATED = "updateAllocation"
    ALLOCATION_RESET = "resetAllocation"
    ALLOCATIONS_REVEALED = "revealAllocations"
    COMBAT_RESOLVED = "resolveCombat"
    STONES_REGENERATED = "regenerate"
    STONES_DISTRIBUTED = "distributeStones"
    COMBINED_ATTACK_APPLIED = "combinedAttack"
    GROUP_DEFENSE_APPLIED = "groupDefense"


@dataclass(frozen=True)
class EncounterStarted:
    kind: ClassVar[EventKind] = EventKind.ENCOUNTER_STARTED
    participant_ids: tuple[str, ...]


@dataclass(frozen=True)
class AllocationUpdated:
    """Only says that a participant committed; the values stay hidden until reveal."""

    kind: ClassVar[EventKind] = EventKind.ALLOCATION_UPDATED
    participant_id: str
    round_number: int


@dataclass(frozen=True)
class AllocationReset:
    kind: ClassVar[EventKind] = EventKind.ALLOCATION_RESET
    participant_id: str
    round_number: int


@dataclass(frozen=True)
class AllocationsRevealed:
    kind: ClassVar[EventKind] = EventKind.ALLOCATIONS_REVEALED
    round_number: int
    allocations: dict[str, RevealedAllocation]


@dataclass(frozen=True)
class CombatResolved:
    kind: ClassVar[EventKind] = EventKind.COMBAT_RESOLVED
    round_number: int
    results: tuple[DamageResult, ...]
    defeated: tuple[str, ...]


@dataclass(frozen=True)
class StonesRegenerated:
    kind: ClassVar[EventKind] = EventKind.STONES_REGENERATED
    regenerated: dict[str, int]


@dataclass(frozen=True)
class StonesDistributed:
    kind: ClassVar[EventKind] = EventKind.STONES_DISTRIBUTED
    participant_id: str
    stone_ids: tuple[str, ...]


@dataclass(frozen=True)
class CombinedAttackApplied:
    kind: ClassVar[EventKind] = EventKind.COMBINED_ATTACK_APPLIED
    attacker_ids: tuple[str, ...]
    target_id: str
    damage: int


@dataclass(frozen=True)
class GroupDefenseApplied:
    kind: ClassVar[EventKind] = EventKind.GROUP_DEFENSE_APPLIED
    attacker_id: str
    defender_ids: tuple[str, ...]
    total_defense: int
    damage: int


ClashEvent = Union[
    EncounterStarted,
    AllocationUpdated,
    AllocationReset,
    AllocationsRevealed,
    CombatResolved,
    StonesRegenerated,
    StonesDistributed,
    CombinedAttackApplied,
    GroupDefenseApplied,
]

EventListener = Callable[[ClashEvent], None]


def event_message(event: ClashEvent) -> dict[str, Any]:
    """Return the ``{type, payload}`` message broadcast to subscribers."""
    return {"type": event.kind.value, "payload": to_json(event)}


def to_json(value: Any) -> Any:
    """Dataclass fields become camelCase keys; mapping keys (participant ids) are kept."""
    if is_dataclass(value):
        return {_camel(item.name): to_json(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, dict):
        return {str(key): to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
