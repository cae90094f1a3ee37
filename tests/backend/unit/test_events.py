from divineclash.backend.events import (
    AllocationsRevealed,
    AllocationUpdated,
    CombatResolved,
    EventKind,
    event_message,
)
from divineclash.backend.models import DamageResult, RevealedAllocation


def test_event_message_uses_type_and_camel_case_payload() -> None:
    message = event_message(AllocationUpdated(participant_id="a", round_number=2))

    assert message == {"type": "updateAllocation", "payload": {"participantId": "a", "roundNumber": 2}}


def test_event_message_keeps_participant_ids_used_as_keys() -> None:
    event = AllocationsRevealed(
        round_number=0,
        allocations={"user_one": RevealedAllocation(attack=3, defense=1, overdrive=True)},
    )

    message = event_message(event)

    assert message["type"] == EventKind.ALLOCATIONS_REVEALED.value
    assert message["payload"]["allocations"] == {"user_one": {"attack": 3, "defense": 1, "overdrive": True}}


def test_resolve_message_carries_ordered_results() -> None:
    event = CombatResolved(
        round_number=1,
        results=(DamageResult("a", "b", 2), DamageResult("b", "a", 1)),
        defeated=("b",),
    )

    payload = event_message(event)["payload"]

    assert payload["results"] == [
        {"attackerId": "a", "defenderId": "b", "damage": 2},
        {"attackerId": "b", "defenderId": "a", "damage": 1},
    ]
    assert payload["defeated"] == ["b"]
