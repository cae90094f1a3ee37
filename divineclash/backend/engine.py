"""Dispatch host and player actions onto the encounter coordinator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .coordinator import EncounterCoordinator
from .errors import InvalidAction
from .events import ClashEvent, to_json
from .models import OverdriveRequest, Participant, Stone


HOST = "HOST"
PLAYER = "PLAYER"

PLAYER_ACTIONS = frozenset({"ALLOCATE", "RESET_ALLOCATION"})
DEFAULT_DISTRIBUTION = 5


@dataclass(frozen=True)
class ActionResult:
    result: Any
    events: list[ClashEvent]


def apply_clash_action(
    coordinator: EncounterCoordinator,
    action: dict[str, Any],
    role: str,
    participant_id: str | None = None,
) -> ActionResult:
    """Apply one action and return its JSON-ready result plus the emitted events.

    Players may only allocate or reset for the participant bound to their
    token; every other action is reserved for the host.
    """
    action_type = str(action.get("type", "")).upper()
    handler = _HANDLERS.get(action_type)
    if handler is None:
        raise InvalidAction(f"Unknown action type: {action_type or '<missing>'}")
    if role != HOST:
        if action_type not in PLAYER_ACTIONS:
            raise PermissionError(f"Only the host can {action_type.lower()}")
        target = action.get("participantId", participant_id)
        if participant_id is None or target != participant_id:
            raise PermissionError("Players may only act for their own participant")

    events: list[ClashEvent] = []
    unsubscribe = coordinator.subscribe(events.append)
    try:
        result = handler(coordinator, action, participant_id)
    finally:
        unsubscribe()
    return ActionResult(result=to_json(result), events=events)


def requested_roster(action: dict[str, Any]) -> list[str] | None:
    """Participant ids named by a START action, or ``None`` when it reuses the current roster."""
    if str(action.get("type", "")).upper() != "START" or action.get("participants") is None:
        return None
    return [_participant(item).id for item in _list(action["participants"], "participants")]


def _apply_start(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    raw_participants = action.get("participants")
    if raw_participants is None:
        participants = [
            Participant(id=state.participant_id, actor_id=state.actor_id, token_id=state.token_id, name=state.name)
            for state in coordinator.get_all_states()
        ]
    else:
        participants = [_participant(item) for item in _list(raw_participants, "participants")]
    vitality = {str(key): _int(value, "vitality") for key, value in dict(action.get("vitality") or {}).items()}
    stones = {str(key): _stone_split(value) for key, value in dict(action.get("stones") or {}).items()}
    return coordinator.start(participants, vitality, stones)


def _apply_allocate(coordinator: EncounterCoordinator, action: dict[str, Any], actor: str | None) -> Any:
    participant_id = _participant_id(action, actor)
    overdrive = action.get("overdrive")
    request: OverdriveRequest | None = None
    if isinstance(overdrive, dict):
        request = OverdriveRequest(
            active=bool(overdrive.get("active", False)),
            burned=_int(overdrive.get("burned", 0), "burned"),
            attack_bonus=_optional_int(overdrive.get("attackBonus"), "attackBonus"),
            defense_bonus=_optional_int(overdrive.get("defenseBonus"), "defenseBonus"),
        )
    return coordinator.allocate(
        participant_id,
        _int(action.get("attack", 0), "attack"),
        _int(action.get("defense", 0), "defense"),
        request,
    )


def _apply_reset(coordinator: EncounterCoordinator, action: dict[str, Any], actor: str | None) -> Any:
    return {"cancelled": coordinator.reset_allocation(_participant_id(action, actor))}


def _apply_reveal(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    return coordinator.reveal()


def _apply_resolve(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    return coordinator.resolve()


def _apply_regenerate(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    return coordinator.regenerate_all()


def _apply_combined_attack(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    attacker_ids = [str(item) for item in _list(action.get("attackerIds"), "attackerIds")]
    return coordinator.combined_attack(attacker_ids, _required_str(action, "targetId"))


def _apply_group_defense(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    defender_ids = [str(item) for item in _list(action.get("defenderIds"), "defenderIds")]
    return coordinator.group_defense(defender_ids, _required_str(action, "attackerId"))


def _apply_distribute(coordinator: EncounterCoordinator, action: dict[str, Any], _: str | None) -> Any:
    participant_id = _required_str(action, "participantId")
    raw_stones = action.get("stones")
    if raw_stones is None:
        count = _int(action.get("count", DEFAULT_DISTRIBUTION), "count")
        return coordinator.grant_stones(participant_id, count)
    stones = [_stone(item) for item in _list(raw_stones, "stones")]
    return coordinator.distribute_stones(participant_id, stones)


_HANDLERS: dict[str, Callable[[EncounterCoordinator, dict[str, Any], str | None], Any]] = {
    "START": _apply_start,
    "ALLOCATE": _apply_allocate,
    "RESET_ALLOCATION": _apply_reset,
    "REVEAL": _apply_reveal,
    "RESOLVE": _apply_resolve,
    "REGENERATE": _apply_regenerate,
    "COMBINED_ATTACK": _apply_combined_attack,
    "GROUP_DEFENSE": _apply_group_defense,
    "DISTRIBUTE_STONES": _apply_distribute,
}


def _participant_id(action: dict[str, Any], actor: str | None) -> str:
    participant_id = action.get("participantId", actor)
    if not isinstance(participant_id, str) or participant_id == "":
        raise InvalidAction("participantId is required")
    return participant_id


def _participant(item: Any) -> Participant:
    if isinstance(item, str):
        return Participant(id=item)
    if not isinstance(item, dict):
        raise InvalidAction("participants must be ids or objects")
    return Participant(
        id=_required_str(item, "id"),
        actor_id=item.get("actorId"),
        token_id=item.get("tokenId"),
        name=item.get("name"),
    )


def _stone(item: Any) -> Stone:
    if isinstance(item, str):
        return Stone(id=item)
    if not isinstance(item, dict):
        raise InvalidAction("stones must be ids or objects")
    return Stone(id=_required_str(item, "id"), kind=str(item.get("type", "power")))


def _stone_split(value: Any) -> tuple[int, int]:
    if not isinstance(value, dict):
        raise InvalidAction("stones must map participants to {attack, defense}")
    return (_int(value.get("attack", 0), "attack"), _int(value.get("defense", 0), "defense"))


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or value == "":
        raise InvalidAction(f"{key} is required")
    return value


def _list(value: Any, name: str) -> list[Any]:
    if not isinstance(value, list):
        raise InvalidAction(f"{name} must be a list")
    return value


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidAction(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAction(f"{name} must be an integer") from exc


def _optional_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    return _int(value, name)
