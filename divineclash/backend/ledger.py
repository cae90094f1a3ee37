"""Stone pool accounting: ready, pending, exhausted and burned collections."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from .errors import InsufficientStones, InvalidAction, UnknownParticipant
from .models import Allocation, Commitment, Overdrive, ParticipantState, Stone


logger = logging.getLogger(__name__)

OVERDRIVE_MULTIPLIER = 4


class PoolLedger:
    """Owns every participant's stones and the only moves allowed between collections.

    Stones are conserved across ready -> pending -> exhausted -> ready. The total
    grows only through ``grant``/``deposit`` and shrinks only through overdrive
    burns, which land in ``burned`` and never come back within an encounter.
    """

    def __init__(self) -> None:
        self._states: dict[str, ParticipantState] = {}
        self._sequence: dict[str, int] = {}
        self._granted: dict[str, int] = {}
        self._issued_ids: set[str] = set()

    def register(self, state: ParticipantState) -> None:
        participant_id = state.participant_id
        self._states[participant_id] = state
        self._sequence.setdefault(participant_id, 0)
        self._granted[participant_id] = state.stone_count
        for collection in (state.ready, state.pending, state.exhausted, state.burned):
            self._issued_ids.update(stone.id for stone in collection)

    def get(self, participant_id: str) -> ParticipantState:
        state = self._states.get(participant_id)
        if state is None:
            raise UnknownParticipant(participant_id)
        return state

    def participants(self) -> list[str]:
        return list(self._states)

    def total_granted(self, participant_id: str) -> int:
        self.get(participant_id)
        return self._granted[participant_id]

    def total_burned(self, participant_id: str) -> int:
        return len(self.get(participant_id).burned)

    def grant(self, participant_id: str, count: int) -> list[Stone]:
        """Mint ``count`` fresh stones onto the end of ``ready``."""
        state = self.get(participant_id)
        if count < 0:
            raise InvalidAction(f"Cannot grant a negative number of stones: {count}")
        stones = [self._mint(participant_id) for _ in range(count)]
        state.ready.extend(stones)
        self._granted[participant_id] += count
        logger.debug("Granted %d stones to %s", count, participant_id)
        return stones

    def deposit(self, participant_id: str, stones: Iterable[Stone]) -> list[Stone]:
        """Add externally supplied stones to ``ready``; ids must never have been issued."""
        state = self.get(participant_id)
        incoming = list(stones)
        seen: set[str] = set()
        for stone in incoming:
            if stone.id in self._issued_ids or stone.id in seen:
                raise InvalidAction(f"Stone id already issued: {stone.id}")
            seen.add(stone.id)
        self._issued_ids.update(seen)
        state.ready.extend(incoming)
        self._granted[participant_id] += len(incoming)
        logger.debug("Deposited %d stones to %s", len(incoming), participant_id)
        return incoming

    def try_commit(
        self,
        participant_id: str,
        attack: int,
        defense: int,
        burn: int = 0,
        *,
        overdrive_enabled: bool,
        attack_bonus: int | None = None,
        defense_bonus: int | None = None,
    ) -> Commitment:
        """Burn for overdrive, then move ``attack + defense`` stones from ready to pending.

        A burn is applied before the availability check and stays applied when
        the check fails.
        """
        state = self.get(participant_id)
        if min(attack, defense, burn) < 0:
            raise InvalidAction("Stone counts must not be negative")

        burned_now = 0
        overdrive = state.overdrive
        if burn > 0 and overdrive_enabled:
            burned_now = min(burn, len(state.ready))
            for _ in range(burned_now):
                state.burned.append(state.ready.pop())
            if burned_now > 0:
                bonus = burned_now * OVERDRIVE_MULTIPLIER
                if attack_bonus is None and defense_bonus is None:
                    attack_bonus, defense_bonus = bonus, 0
                overdrive = Overdrive(
                    active=True,
                    attack_bonus=attack_bonus or 0,
                    defense_bonus=defense_bonus or 0,
                    burned_this_round=state.overdrive.burned_this_round + burned_now,
                )
                logger.debug("%s burned %d stones for overdrive", participant_id, burned_now)

        requested = attack + defense
        available = len(state.ready)
        if requested > available:
            if burned_now > 0:
                state.overdrive = Overdrive(burned_this_round=overdrive.burned_this_round)
                logger.warning(
                    "%s burned %d stones but allocation failed (%d > %d); burn is kept",
                    participant_id,
                    burned_now,
                    requested,
                    available,
                )
            raise InsufficientStones(available=available, requested=requested)

        for _ in range(requested):
            state.pending.append(state.ready.pop())
        state.overdrive = overdrive
        state.allocation = Allocation(
            base_attack=attack,
            base_defense=defense,
            attack_bonus=overdrive.attack_bonus if overdrive.active else 0,
            defense_bonus=overdrive.defense_bonus if overdrive.active else 0,
            committed=True,
        )
        return Commitment(
            attack=state.allocation.attack,
            defense=state.allocation.defense,
            burned=burned_now,
        )

    def cancel_commitment(self, participant_id: str) -> bool:
        """Return pending stones to the front of ready and clear the overlays.

        Returns ``False`` without touching anything when no commitment exists.
        Burned stones stay burned, so the round's burn tally survives the reset.
        """
        state = self.get(participant_id)
        if not state.allocation.committed:
            return False
        state.ready[:0] = state.pending
        state.pending.clear()
        state.allocation = Allocation()
        state.overdrive = Overdrive(burned_this_round=state.overdrive.burned_this_round)
        return True

    def restore_commitment(
        self,
        participant_id: str,
        pending: list[Stone],
        allocation: Allocation,
        overdrive: Overdrive,
    ) -> bool:
        """Put a cancelled commitment back after a failed resubmission.

        The round's burn tally is kept. Returns ``False`` and leaves the
        commitment cancelled when a burn already consumed one of its stones.
        """
        state = self.get(participant_id)
        ready_ids = {stone.id for stone in state.ready}
        if any(stone.id not in ready_ids for stone in pending):
            logger.warning("%s lost a committed stone to a burn; previous commitment stays cancelled", participant_id)
            return False
        pending_ids = {stone.id for stone in pending}
        state.ready[:] = [stone for stone in state.ready if stone.id not in pending_ids]
        state.pending[:] = pending
        state.allocation = allocation
        state.overdrive = replace(overdrive, burned_this_round=state.overdrive.burned_this_round)
        return True

    def consume_pending(self, participant_id: str) -> int:
        state = self.get(participant_id)
        moved = len(state.pending)
        state.exhausted.extend(state.pending)
        state.pending.clear()
        return moved

    def regenerate(self, participant_id: str) -> int:
        """Return up to ``max(1, mastery_rank - burned)`` exhausted stones to ready."""
        state = self.get(participant_id)
        rate = max(1, state.mastery_rank - len(state.burned))
        count = min(rate, len(state.exhausted))
        for _ in range(count):
            state.ready.append(state.exhausted.pop())
        logger.debug("%s regenerated %d stones (rate %d)", participant_id, count, rate)
        return count

    def _mint(self, participant_id: str) -> Stone:
        while True:
            self._sequence[participant_id] += 1
            stone_id = f"{participant_id}-{self._sequence[participant_id]}"
            if stone_id not in self._issued_ids:
                self._issued_ids.add(stone_id)
                return Stone(id=stone_id)
