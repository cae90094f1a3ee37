"""JSON views of an encounter, masking allocations the viewer may not see yet."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .coordinator import EncounterCoordinator
from .models import ParticipantState


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_encounter_snapshot(
    coordinator: EncounterCoordinator,
    viewer_id: str | None = None,
    is_host: bool = False,
) -> dict[str, Any]:
    """Return the state a viewer may see.

    The host sees everything. A player sees their own allocation and every
    allocation once it has been revealed; other allocations only expose
    whether they were committed.
    """
    return {
        "phase": coordinator.phase.value,
        "round": coordinator.round_number,
        "participants": [
            _participant_view(state, visible=is_host or state.participant_id == viewer_id)
            for state in coordinator.get_all_states()
        ],
    }


def _participant_view(state: ParticipantState, visible: bool) -> dict[str, Any]:
    allocation = state.allocation
    show_allocation = visible or allocation.revealed
    # Another viewer must not see this round's burn before the reveal.
    hidden_burn = 0 if show_allocation else state.overdrive.burned_this_round
    return {
        "id": state.participant_id,
        "actorId": state.actor_id,
        "tokenId": state.token_id,
        "name": state.name,
        "vitality": state.vitality,
        "vitalityMax": state.vitality_max,
        "defeated": state.is_defeated,
        "masteryRank": state.mastery_rank,
        "stones": {
            "inHand": len(state.ready) + len(state.pending) + hidden_burn,
            "ready": len(state.ready) if show_allocation else None,
            "pending": len(state.pending) if show_allocation else None,
            "exhausted": len(state.exhausted),
            "burned": len(state.burned) - hidden_burn,
        },
        "allocation": {
            "committed": allocation.committed,
            "revealed": allocation.revealed,
            "attack": allocation.attack if show_allocation else None,
            "defense": allocation.defense if show_allocation else None,
            "baseAttack": allocation.base_attack if show_allocation else None,
            "baseDefense": allocation.base_defense if show_allocation else None,
        },
        "overdrive": {
            "active": state.overdrive.active if show_allocation else None,
            "attackBonus": state.overdrive.attack_bonus if show_allocation else None,
            "defenseBonus": state.overdrive.defense_bonus if show_allocation else None,
            "burnedThisRound": state.overdrive.burned_this_round if show_allocation else None,
        },
    }
