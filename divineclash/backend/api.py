"""FastAPI endpoints for clash creation, actions and websocket sync."""

from __future__ import annotations

import os
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .errors import ClashError, UnknownParticipant
from .models import Participant
from .store import EncounterStore, InMemoryEncounterStore


class ParticipantPayload(BaseModel):
    id: str = Field(min_length=1, max_length=200)
    actorId: str | None = None
    tokenId: str | None = None
    name: str | None = None


class StoneSplit(BaseModel):
    attack: int = Field(ge=0)
    defense: int = Field(ge=0)


class CreateEncounterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    participants: list[ParticipantPayload]
    vitality: dict[str, int] = Field(default_factory=dict)
    stones: dict[str, StoneSplit] = Field(default_factory=dict)


class CreateEncounterResponse(BaseModel):
    encounter_id: str
    host_token: str
    player_tokens: dict[str, str]


class EncounterStateResponse(BaseModel):
    state: dict[str, Any]


class ActionEnvelope(BaseModel):
    token: str = Field(min_length=1)
    action: dict[str, Any]


class ActionResponse(BaseModel):
    result: Any
    events: list[dict[str, Any]]
    state: dict[str, Any]


@dataclass(frozen=True)
class _Viewer:
    role: str
    participant_id: str | None


class EncounterWebSocketHub:
    """Relays event messages and each viewer's own state view."""

    def __init__(self) -> None:
        self._connections: dict[str, dict[WebSocket, _Viewer]] = defaultdict(dict)

    async def connect(self, encounter_id: str, websocket: WebSocket, role: str, participant_id: str | None) -> None:
        await websocket.accept()
        self._connections[encounter_id][websocket] = _Viewer(role=role, participant_id=participant_id)

    def disconnect(self, encounter_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(encounter_id)
        if connections is None:
            return
        connections.pop(websocket, None)
        if not connections:
            self._connections.pop(encounter_id, None)

    async def send_state(self, websocket: WebSocket, state: dict[str, Any]) -> None:
        await websocket.send_json({"type": "state.full", "state": state})

    async def broadcast(self, encounter_id: str, messages: list[dict[str, Any]], store: EncounterStore) -> None:
        stale_connections: list[WebSocket] = []
        for websocket, viewer in list(self._connections.get(encounter_id, {}).items()):
            state = store.view_state(encounter_id, viewer.role, viewer.participant_id)
            try:
                for message in messages:
                    await websocket.send_json(message)
                if state is not None:
                    await self.send_state(websocket, state)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(encounter_id=encounter_id, websocket=websocket)


def _default_store() -> EncounterStore:
    server_salt = os.getenv("DIVINECLASH_SERVER_SALT", "dev-salt")
    return InMemoryEncounterStore(server_salt=server_salt)


def create_app(store: EncounterStore | None = None) -> FastAPI:
    app = FastAPI(title="Divine Clash API", version="0.1.0")
    encounter_store = store if store is not None else _default_store()
    websocket_hub = EncounterWebSocketHub()
    app.state.websocket_hub = websocket_hub

    def get_store() -> EncounterStore:
        return encounter_store

    @app.post("/api/encounters", response_model=CreateEncounterResponse)
    def create_encounter(
        payload: CreateEncounterRequest,
        local_store: EncounterStore = Depends(get_store),
    ) -> CreateEncounterResponse:
        participants = [
            Participant(id=item.id, actor_id=item.actorId, token_id=item.tokenId, name=item.name)
            for item in payload.participants
        ]
        stones = {key: (split.attack, split.defense) for key, split in payload.stones.items()}
        try:
            created = local_store.create_encounter(
                name=payload.name,
                participants=participants,
                vitality=payload.vitality,
                stones=stones,
            )
        except ClashError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return CreateEncounterResponse(
            encounter_id=created.encounter_id,
            host_token=created.host_token,
            player_tokens=created.player_tokens,
        )

    @app.get("/api/encounters/{encounter_id}", response_model=EncounterStateResponse)
    def get_encounter(
        encounter_id: str,
        token: str = Query(min_length=1),
        local_store: EncounterStore = Depends(get_store),
    ) -> EncounterStateResponse:
        record = local_store.get_encounter_state(encounter_id=encounter_id, raw_token=token)
        if record is None:
            raise HTTPException(status_code=404, detail="Encounter not found or token invalid")
        return EncounterStateResponse(state=record.state)

    @app.post("/api/encounters/{encounter_id}/actions", response_model=ActionResponse)
    async def post_action(
        encounter_id: str,
        payload: ActionEnvelope,
        local_store: EncounterStore = Depends(get_store),
    ) -> ActionResponse:
        access = local_store.get_encounter_access(encounter_id=encounter_id, raw_token=payload.token)
        if access is None:
            raise HTTPException(status_code=403, detail="Action not allowed")
        try:
            outcome = local_store.apply_action(encounter_id=encounter_id, raw_token=payload.token, action=payload.action)
        except PermissionError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        except UnknownParticipant as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ClashError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if outcome is None:
            raise HTTPException(status_code=403, detail="Action not allowed")

        await websocket_hub.broadcast(encounter_id=encounter_id, messages=outcome.messages, store=local_store)
        state = local_store.view_state(encounter_id, access.role, access.participant_id) or {}
        return ActionResponse(result=outcome.result, events=outcome.messages, state=state)

    @app.websocket("/ws/encounters/{encounter_id}")
    async def encounter_ws(
        websocket: WebSocket,
        encounter_id: str,
        local_store: EncounterStore = Depends(get_store),
    ) -> None:
        token = websocket.query_params.get("token")
        if token is None or token == "":
            await websocket.close(code=1008)
            return
        access = local_store.get_encounter_access(encounter_id=encounter_id, raw_token=token)
        if access is None:
            await websocket.close(code=1008)
            return

        await websocket_hub.connect(
            encounter_id=encounter_id,
            websocket=websocket,
            role=access.role,
            participant_id=access.participant_id,
        )
        await websocket_hub.send_state(websocket=websocket, state=access.state)

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(encounter_id=encounter_id, websocket=websocket)

    return app


app = create_app()
