"""Round phases, secret allocations, reveal and resolution for one encounter."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Callable

from .config import ClashSettings, load_clash_settings
from .directory import ParticipantDirectory, StaticDirectory
from .errors import InsufficientStones, InvalidAction, InvalidEncounter, InvalidPhase
from .events import (
    AllocationReset,
    AllocationsRevealed,
    AllocationUpdated,
    ClashEvent,
    CombatResolved,
    CombinedAttackApplied,
    EncounterStarted,
    EventListener,
    GroupDefenseApplied,
    StonesDistributed,
    StonesRegenerated,
)
from .ledger import PoolLedger
from .models import (
    Allocation,
    CombinedAttackResult,
    Commitment,
    DamageResult,
    GroupDefenseResult,
    Overdrive,
    OverdriveRequest,
    Participant,
    ParticipantState,
    Phase,
    ResolutionResult,
    RevealedAllocation,
    Stone,
)


logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2
MIN_ATTACKERS = 2
MIN_DEFENDERS = 1

TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.SETUP: frozenset({Phase.ALLOCATING}),
    Phase.ALLOCATING: frozenset({Phase.REVEALED, Phase.SETUP}),
    Phase.REVEALED: frozenset({Phase.RESOLVED, Phase.SETUP}),
    Phase.RESOLVED: frozenset({Phase.ALLOCATING, Phase.SETUP}),
}


def can_transition(current: Phase, target: Phase) -> bool:
    return target in TRANSITIONS[current]


class EncounterCoordinator:
    """Drives one encounter: start, secret allocation, reveal, resolve, regenerate.

    The instance is the single owner of encounter state. Starting a new
    encounter replaces the previous participants and ledger. All vitality and
    stone mutations go through this class and its ``PoolLedger``.
    """

    def __init__(
        self,
        settings_provider: Callable[[], ClashSettings] = load_clash_settings,
        directory: ParticipantDirectory | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._directory = directory if directory is not None else StaticDirectory()
        self._ledger = PoolLedger()
        self._order: list[str] = []
        self._phase = Phase.SETUP
        self._round_number = 0
        self._listeners: list[EventListener] = []
        self._last_reveal: dict[str, RevealedAllocation] | None = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def round_number(self) -> int:
        return self._round_number

    @property
    def participant_ids(self) -> list[str]:
        return list(self._order)

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(
        self,
        participants: Sequence[Participant],
        vitality_by_participant: Mapping[str, int] | None = None,
        initial_stones_by_participant: Mapping[str, tuple[int, int]] | None = None,
    ) -> list[ParticipantState]:
        """Build fresh participant states and open round 0 for allocation."""
        ids = [participant.id for participant in participants]
        if len(participants) < MIN_PARTICIPANTS:
            raise InvalidEncounter(f"An encounter needs at least {MIN_PARTICIPANTS} participants")
        if len(set(ids)) != len(ids):
            raise InvalidEncounter("Participant ids must be unique")

        settings = self._settings_provider()
        vitality_by_participant = vitality_by_participant or {}
        initial_stones_by_participant = initial_stones_by_participant or {}
        ledger = PoolLedger()
        for participant in participants:
            vitality = vitality_by_participant.get(participant.id)
            if vitality is None:
                vitality = self._directory.default_vitality(participant)
            if vitality is None:
                vitality = settings.default_vitality
            stones = initial_stones_by_participant.get(participant.id)
            if stones is None:
                stones = self._directory.default_stones(participant)
            if stones is None:
                stones = (settings.default_attack_stones, settings.default_defense_stones)
            mastery_rank = self._directory.mastery_rank(participant) or settings.mastery_rank_default
            if vitality < 0 or min(stones) < 0:
                raise InvalidEncounter(f"Negative vitality or stones for {participant.id}")

            ledger.register(
                ParticipantState(
                    participant_id=participant.id,
                    actor_id=participant.actor_id,
                    token_id=participant.token_id,
                    name=self._directory.display_name(participant),
                    vitality=vitality,
                    vitality_max=vitality,
                    mastery_rank=max(1, mastery_rank),
                )
            )
            ledger.grant(participant.id, sum(stones))

        self._ledger = ledger
        self._order = ids
        if self._phase is not Phase.SETUP:
            self._transition(Phase.SETUP)
        self._round_number = 0
        self._last_reveal = None
        self._transition(Phase.ALLOCATING)
        logger.info("Encounter started with %d participants", len(ids))
        self._emit(EncounterStarted(participant_ids=tuple(ids)))
        return self.get_all_states()

    def allocate(
        self,
        participant_id: str,
        attack: int,
        defense: int,
        overdrive: OverdriveRequest | None = None,
    ) -> Commitment:
        """Commit a secret allocation; resubmitting replaces the previous one."""
        self._require_phase("allocate", Phase.ALLOCATING)
        state = self._ledger.get(participant_id)

        burn = 0
        attack_bonus: int | None = None
        defense_bonus: int | None = None
        if overdrive is not None and overdrive.active:
            burn = overdrive.burned
            attack_bonus = overdrive.attack_bonus
            defense_bonus = overdrive.defense_bonus
        overdrive_enabled = self._settings_provider().overdrive_enabled
        if min(attack, defense, burn) < 0:
            raise InvalidAction("Stone counts must not be negative")

        # A failing resubmission keeps the previous commitment; only a burn sticks.
        if burn <= 0 or not overdrive_enabled:
            available = len(state.ready) + len(state.pending)
            if attack + defense > available:
                raise InsufficientStones(available=available, requested=attack + defense)
        previous = (list(state.pending), state.allocation, state.overdrive)
        self._ledger.cancel_commitment(participant_id)

        try:
            commitment = self._ledger.try_commit(
                participant_id,
                attack,
                defense,
                burn,
                overdrive_enabled=overdrive_enabled,
                attack_bonus=attack_bonus,
                defense_bonus=defense_bonus,
            )
        except InsufficientStones:
            if previous[1].committed:
                self._ledger.restore_commitment(participant_id, *previous)
            raise
        logger.debug("%s committed an allocation for round %d", participant_id, self._round_number)
        self._emit(AllocationUpdated(participant_id=participant_id, round_number=self._round_number))
        return commitment

    def reset_allocation(self, participant_id: str) -> bool:
        self._require_phase("resetAllocation", Phase.ALLOCATING)
        cancelled = self._ledger.cancel_commitment(participant_id)
        if cancelled:
            self._emit(AllocationReset(participant_id=participant_id, round_number=self._round_number))
        return cancelled

    def reveal(self) -> dict[str, RevealedAllocation]:
        """Reveal every allocation at once; repeating while revealed returns the same snapshot."""
        if self._phase is Phase.REVEALED and self._last_reveal is not None:
            return dict(self._last_reveal)
        self._require_phase("reveal", Phase.ALLOCATING)

        snapshot: dict[str, RevealedAllocation] = {}
        for participant_id in self._order:
            state = self._ledger.get(participant_id)
            state.allocation = replace(state.allocation, revealed=True)
            snapshot[participant_id] = RevealedAllocation(
                attack=state.allocation.attack,
                defense=state.allocation.defense,
                overdrive=state.overdrive.active,
            )
        self._transition(Phase.REVEALED)
        self._last_reveal = snapshot
        logger.info("Allocations revealed for round %d", self._round_number)
        self._emit(AllocationsRevealed(round_number=self._round_number, allocations=dict(snapshot)))
        return dict(snapshot)

    def resolve(self) -> ResolutionResult:
        """Apply pairwise damage, exhaust committed stones and close the round."""
        self._require_phase("resolve", Phase.REVEALED)

        results: list[DamageResult] = []
        for index, first_id in enumerate(self._order):
            for second_id in self._order[index + 1 :]:
                first = self._ledger.get(first_id)
                second = self._ledger.get(second_id)
                forward = max(0, first.allocation.attack - second.allocation.defense)
                backward = max(0, second.allocation.attack - first.allocation.defense)
                if forward > 0:
                    self._apply_damage(second, forward)
                    results.append(DamageResult(attacker_id=first_id, defender_id=second_id, damage=forward))
                if backward > 0:
                    self._apply_damage(first, backward)
                    results.append(DamageResult(attacker_id=second_id, defender_id=first_id, damage=backward))

        for participant_id in self._order:
            state = self._ledger.get(participant_id)
            self._ledger.consume_pending(participant_id)
            burned = state.overdrive.burned_this_round
            if burned > 0:
                state.mastery_rank = max(1, state.mastery_rank - burned)
            state.allocation = Allocation()
            state.overdrive = Overdrive()

        resolved_round = self._round_number
        self._transition(Phase.RESOLVED)
        self._round_number += 1
        self._last_reveal = None
        defeated = tuple(pid for pid in self._order if self._ledger.get(pid).is_defeated)
        for participant_id in defeated:
            logger.info("%s has been defeated", participant_id)
        logger.info("Round %d resolved with %d damage results", resolved_round, len(results))
        outcome = ResolutionResult(round_number=resolved_round, results=tuple(results), defeated=defeated)
        self._emit(CombatResolved(round_number=resolved_round, results=outcome.results, defeated=defeated))
        return outcome

    def regenerate_all(self) -> dict[str, int]:
        """Regenerate every pool; after a resolved round this opens the next one."""
        if not self._order:
            raise InvalidPhase("regenerate", self._phase.value)
        regenerated = {pid: self._ledger.regenerate(pid) for pid in self._order}
        if self._phase is Phase.RESOLVED:
            self._transition(Phase.ALLOCATING)
        logger.info("Stones regenerated: %s", regenerated)
        self._emit(StonesRegenerated(regenerated=dict(regenerated)))
        return regenerated

    def combined_attack(self, attacker_ids: Sequence[str], target_id: str) -> CombinedAttackResult:
        """Sum current attack values against one target, outside the pairwise loop."""
        attackers = self._team(attacker_ids, "combined attack", MIN_ATTACKERS)
        target = self._ledger.get(target_id)

        total_attack = sum(self._ledger.get(pid).allocation.attack for pid in attackers)
        damage = max(0, total_attack - target.allocation.defense)
        if damage > 0:
            self._apply_damage(target, damage)
        logger.info("Combined attack by %s on %s dealt %d", attackers, target_id, damage)
        self._emit(CombinedAttackApplied(attacker_ids=tuple(attackers), target_id=target_id, damage=damage))
        return CombinedAttackResult(
            target_id=target_id,
            lead_attacker_id=attackers[0],
            total_attack=total_attack,
            damage=damage,
        )

    def group_defense(self, defender_ids: Sequence[str], attacker_id: str) -> GroupDefenseResult:
        """Pool up to ``max_group_defenders`` defense values and split the overflow evenly."""
        cap = self._settings_provider().max_group_defenders
        defenders = self._team(defender_ids, "group defense", MIN_DEFENDERS, cap)
        attacker = self._ledger.get(attacker_id)

        total_defense = sum(self._ledger.get(pid).allocation.defense for pid in defenders)
        damage = max(0, attacker.allocation.attack - total_defense)
        share, remainder = divmod(damage, len(defenders))
        distribution = tuple(share + (1 if index < remainder else 0) for index in range(len(defenders)))
        for defender_id, taken in zip(defenders, distribution):
            if taken > 0:
                self._apply_damage(self._ledger.get(defender_id), taken)
        logger.info("Group defense %s against %s took %d", defenders, attacker_id, damage)
        self._emit(
            GroupDefenseApplied(
                attacker_id=attacker_id,
                defender_ids=tuple(defenders),
                total_defense=total_defense,
                damage=damage,
            )
        )
        return GroupDefenseResult(
            attacker_id=attacker_id,
            defender_ids=tuple(defenders),
            total_defense=total_defense,
            damage=damage,
            distribution=distribution,
        )

    def distribute_stones(self, participant_id: str, stones: Iterable[Stone]) -> list[Stone]:
        added = self._ledger.deposit(participant_id, stones)
        self._emit(StonesDistributed(participant_id=participant_id, stone_ids=tuple(s.id for s in added)))
        return added

    def grant_stones(self, participant_id: str, count: int) -> list[Stone]:
        """Mint ``count`` new stones for a participant and announce them like a distribution."""
        added = self._ledger.grant(participant_id, count)
        self._emit(StonesDistributed(participant_id=participant_id, stone_ids=tuple(s.id for s in added)))
        return added

    def get_participant_state(self, participant_id: str) -> ParticipantState:
        return self._ledger.get(participant_id).copy()

    def get_all_states(self) -> list[ParticipantState]:
        return [self._ledger.get(pid).copy() for pid in self._order]

    def total_granted(self, participant_id: str) -> int:
        return self._ledger.total_granted(participant_id)

    def _team(
        self, member_ids: Sequence[str], label: str, minimum: int, cap: int | None = None
    ) -> list[str]:
        members = list(dict.fromkeys(member_ids))[:cap]
        if len(members) < minimum:
            noun = "participant" if minimum == 1 else "participants"
            raise InvalidAction(f"A {label} needs at least {minimum} {noun}")
        for member_id in members:
            self._ledger.get(member_id)
        return members

    def _apply_damage(self, state: ParticipantState, damage: int) -> None:
        state.vitality = max(0, min(state.vitality_max, state.vitality - damage))

    def _require_phase(self, operation: str, *allowed: Phase) -> None:
        if self._phase not in allowed:
            logger.warning("Rejected %s during phase %s", operation, self._phase.value)
            raise InvalidPhase(operation, self._phase.value)

    def _transition(self, target: Phase) -> None:
        if not can_transition(self._phase, target):
            raise InvalidPhase(f"transition to {target.value}", self._phase.value)
        self._phase = target

    def _emit(self, event: ClashEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
