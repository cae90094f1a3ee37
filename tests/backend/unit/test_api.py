import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from divineclash.backend.api import create_app
from divineclash.backend.config import ClashSettings
from divineclash.backend.store import InMemoryEncounterStore


def _client() -> TestClient:
    store = InMemoryEncounterStore(server_salt="test-salt", settings_provider=ClashSettings)
    return TestClient(create_app(store=store))


def _create(client: TestClient) -> dict:
    response = client.post(
        "/api/encounters",
        json={
            "name": "Temple Duel",
            "participants": [{"id": "a", "name": "Aria"}, {"id": "b"}],
            "vitality": {"a": 12},
            "stones": {"b": {"attack": 2, "defense": 2}},
        },
    )
    assert response.status_code == 200
    return response.json()


def test_post_encounters_returns_id_and_tokens() -> None:
    data = _create(_client())

    assert data["encounter_id"]
    assert data["host_token"]
    assert set(data["player_tokens"]) == {"a", "b"}
    assert data["host_token"] not in data["player_tokens"].values()


def test_post_encounters_rejects_single_participant() -> None:
    response = _client().post("/api/encounters", json={"name": "Solo", "participants": [{"id": "a"}]})

    assert response.status_code == 422


def test_get_encounter_returns_state_for_valid_token() -> None:
    client = _client()
    created = _create(client)

    response = client.get(f"/api/encounters/{created['encounter_id']}", params={"token": created["player_tokens"]["a"]})
    invalid = client.get(f"/api/encounters/{created['encounter_id']}", params={"token": "invalid"})

    assert response.status_code == 200
    state = response.json()["state"]
    assert state["id"] == created["encounter_id"]
    assert state["participants"][0]["vitality"] == 12
    assert state["participants"][1]["stones"]["inHand"] == 4
    assert invalid.status_code == 404


def test_post_action_maps_errors_to_status_codes() -> None:
    client = _client()
    created = _create(client)
    url = f"/api/encounters/{created['encounter_id']}/actions"
    player = created["player_tokens"]["a"]

    forbidden = client.post(url, json={"token": player, "action": {"type": "REVEAL"}})
    bad_token = client.post(url, json={"token": "nope", "action": {"type": "REVEAL"}})
    too_many = client.post(url, json={"token": player, "action": {"type": "ALLOCATE", "attack": 50}})
    unknown = client.post(
        url,
        json={"token": created["host_token"], "action": {"type": "ALLOCATE", "participantId": "ghost", "attack": 1}},
    )

    assert forbidden.status_code == 403
    assert bad_token.status_code == 403
    assert too_many.status_code == 409
    assert unknown.status_code == 404

    restart = client.post(
        url, json={"token": created["host_token"], "action": {"type": "START", "participants": ["x", "y"]}}
    )
    assert restart.status_code == 409


def test_full_round_over_http() -> None:
    client = _client()
    created = _create(client)
    url = f"/api/encounters/{created['encounter_id']}/actions"

    client.post(url, json={"token": created["player_tokens"]["a"], "action": {"type": "ALLOCATE", "attack": 4}})
    client.post(url, json={"token": created["player_tokens"]["b"], "action": {"type": "ALLOCATE", "defense": 1}})
    client.post(url, json={"token": created["host_token"], "action": {"type": "REVEAL"}})
    resolved = client.post(url, json={"token": created["host_token"], "action": {"type": "RESOLVE"}})

    assert resolved.status_code == 200
    body = resolved.json()
    assert body["result"]["results"] == [{"attackerId": "a", "defenderId": "b", "damage": 3}]
    assert body["events"][0]["type"] == "resolveCombat"
    assert body["state"]["phase"] == "resolved"


def test_websocket_sends_initial_state_after_connect() -> None:
    client = _client()
    created = _create(client)
    encounter_id = created["encounter_id"]

    with client.websocket_connect(f"/ws/encounters/{encounter_id}?token={created['host_token']}") as websocket:
        message = websocket.receive_json()

    assert message["type"] == "state.full"
    assert message["state"]["id"] == encounter_id


def test_websocket_rejects_invalid_token() -> None:
    client = _client()
    created = _create(client)

    with pytest.raises(Exception):
        with client.websocket_connect(f"/ws/encounters/{created['encounter_id']}?token=invalid"):
            pass


def test_websocket_broadcasts_events_and_per_viewer_state() -> None:
    store = InMemoryEncounterStore(server_salt="test-salt", settings_provider=ClashSettings)
    app = create_app(store=store)

    with TestClient(app) as client:
        created = _create(client)
        encounter_id = created["encounter_id"]
        token_a = created["player_tokens"]["a"]
        token_b = created["player_tokens"]["b"]

        with client.websocket_connect(f"/ws/encounters/{encounter_id}?token={token_a}") as ws_a:
            with client.websocket_connect(f"/ws/encounters/{encounter_id}?token={token_b}") as ws_b:
                ws_a.receive_json()
                ws_b.receive_json()

                client.post(
                    f"/api/encounters/{encounter_id}/actions",
                    json={"token": token_a, "action": {"type": "ALLOCATE", "attack": 3}},
                )

                event_a = ws_a.receive_json()
                state_a = ws_a.receive_json()
                event_b = ws_b.receive_json()
                state_b = ws_b.receive_json()

    assert event_a == event_b
    assert event_a["type"] == "updateAllocation"
    assert state_a["state"]["participants"][0]["allocation"]["attack"] == 3
    assert state_b["state"]["participants"][0]["allocation"]["attack"] is None
