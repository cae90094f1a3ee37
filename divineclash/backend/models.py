"""Domain models for the stone pools, allocations and encounter API contracts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


STONE_KIND = "power"


class Phase(str, Enum):
    SETUP = "setup"
    ALLOCATING = "allocating"
    REVEALED = "revealed"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Stone:
    id: str
    kind: str = STONE_KIND


@dataclass(frozen=True)
class Allocation:
    """A participant's secret commitment for the current round."""

    base_attack: int = 0
    base_defense: int = 0
    attack_bonus: int = 0
    defense_bonus: int = 0
    revealed: bool = False
    committed: bool = False

    @property
    def attack(self) -> int:
        return self.base_attack + self.attack_bonus

    @property
    def defense(self) -> int:
        return self.base_defense + self.defense_bonus


@dataclass(frozen=True)
class Overdrive:
    active: bool = False
    attack_bonus: int = 0
    defense_bonus: int = 0
    burned_this_round: int = 0


@dataclass(frozen=True)
class OverdriveRequest:
    """Overdrive intent sent along with an allocation.

    ``None`` bonuses leave the split to the ledger, which puts the whole
    burn bonus on attack.
    """

    active: bool = True
    burned: int = 0
    attack_bonus: int | None = None
    defense_bonus: int | None = None


@dataclass(frozen=True)
class Participant:
    id: str
    actor_id: str | None = None
    token_id: str | None = None
    name: str | None = None


@dataclass
class ParticipantState:
    participant_id: str
    vitality: int
    vitality_max: int
    mastery_rank: int
    actor_id: str | None = None
    token_id: str | None = None
    name: str | None = None
    ready: list[Stone] = field(default_factory=list)
    pending: list[Stone] = field(default_factory=list)
    exhausted: list[Stone] = field(default_factory=list)
    burned: list[Stone] = field(default_factory=list)
    allocation: Allocation = field(default_factory=Allocation)
    overdrive: Overdrive = field(default_factory=Overdrive)

    @property
    def stone_count(self) -> int:
        return len(self.ready) + len(self.pending) + len(self.exhausted) + len(self.burned)

    @property
    def is_defeated(self) -> bool:
        return self.vitality <= 0

    def copy(self) -> ParticipantState:
        """Detached copy; stones and overlays are immutable so list copies suffice."""
        return replace(
            self,
            ready=list(self.ready),
            pending=list(self.pending),
            exhausted=list(self.exhausted),
            burned=list(self.burned),
        )


@dataclass(frozen=True)
class Commitment:
    attack: int
    defense: int
    burned: int


@dataclass(frozen=True)
class DamageResult:
    attacker_id: str
    defender_id: str
    damage: int


@dataclass(frozen=True)
class RevealedAllocation:
    attack: int
    defense: int
    overdrive: bool


@dataclass(frozen=True)
class ResolutionResult:
    round_number: int
    results: tuple[DamageResult, ...]
    defeated: tuple[str, ...]


@dataclass(frozen=True)
class CombinedAttackResult:
    target_id: str
    lead_attacker_id: str
    total_attack: int
    damage: int


@dataclass(frozen=True)
class GroupDefenseResult:
    attacker_id: str
    defender_ids: tuple[str, ...]
    total_defense: int
    damage: int
    distribution: tuple[int, ...]


@dataclass(frozen=True)
class EncounterRecord:
    encounter_id: str
    state: dict[str, Any]


@dataclass(frozen=True)
class EncounterAccess:
    encounter_id: str
    role: str
    participant_id: str | None
    state: dict[str, Any]


@dataclass(frozen=True)
class CreatedEncounter:
    encounter_id: str
    host_token: str
    player_tokens: dict[str, str]
