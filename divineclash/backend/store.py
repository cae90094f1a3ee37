"""In-memory registry of running encounters, their access tokens and event logs."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .config import ClashSettings, load_clash_settings
from .coordinator import EncounterCoordinator
from .directory import ParticipantDirectory
from .engine import HOST, PLAYER, apply_clash_action, requested_roster
from .errors import InvalidEncounter
from .events import ClashEvent, event_message
from .models import CreatedEncounter, EncounterAccess, EncounterRecord, Participant
from .security import hash_token, issue_tokens
from .state import build_encounter_snapshot, utc_now_iso


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionOutcome:
    result: Any
    messages: list[dict[str, Any]]
    version: int


class EncounterStore(Protocol):
    def create_encounter(
        self,
        name: str,
        participants: list[Participant],
        vitality: dict[str, int] | None = None,
        stones: dict[str, tuple[int, int]] | None = None,
    ) -> CreatedEncounter:
        """Create and start an encounter, returning its host and player tokens."""

    def get_encounter_state(self, encounter_id: str, raw_token: str) -> EncounterRecord | None:
        """Return the state visible to the token holder when the token is valid."""

    def get_encounter_access(self, encounter_id: str, raw_token: str) -> EncounterAccess | None:
        """Return role, bound participant and visible state when the token is valid."""

    def apply_action(self, encounter_id: str, raw_token: str, action: dict[str, Any]) -> ActionOutcome | None:
        """Apply an action for the token holder; ``None`` when the token is invalid."""

    def view_state(self, encounter_id: str, role: str, participant_id: str | None) -> dict[str, Any] | None:
        """Return the current state as seen by a role/participant."""


@dataclass
class _EncounterEntry:
    name: str
    coordinator: EncounterCoordinator
    tokens: dict[str, str]
    version: int = 1
    log: list[dict[str, Any]] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = ""

    def __post_init__(self) -> None:
        self.updated_at = self.updated_at or self.created_at


@dataclass
class InMemoryEncounterStore:
    server_salt: str
    settings_provider: Callable[[], ClashSettings] = load_clash_settings
    directory: ParticipantDirectory | None = None

    def __post_init__(self) -> None:
        self._encounters: dict[str, _EncounterEntry] = {}

    def create_encounter(
        self,
        name: str,
        participants: list[Participant],
        vitality: dict[str, int] | None = None,
        stones: dict[str, tuple[int, int]] | None = None,
    ) -> CreatedEncounter:
        if any(participant.id == HOST for participant in participants):
            raise InvalidEncounter(f"{HOST} is reserved and cannot be a participant id")

        coordinator = EncounterCoordinator(settings_provider=self.settings_provider, directory=self.directory)
        events: list[ClashEvent] = []
        unsubscribe = coordinator.subscribe(events.append)
        try:
            coordinator.start(participants, vitality, stones)
        finally:
            unsubscribe()

        raw_tokens, hashes = issue_tokens([participant.id for participant in participants], self.server_salt)
        encounter_id = str(uuid.uuid4())
        entry = _EncounterEntry(name=name, coordinator=coordinator, tokens=hashes)
        entry.log.extend(event_message(event) for event in events)
        self._encounters[encounter_id] = entry
        logger.info("Created encounter %s (%s)", encounter_id, name)

        host_token = raw_tokens.pop(HOST)
        return CreatedEncounter(encounter_id=encounter_id, host_token=host_token, player_tokens=raw_tokens)

    def get_encounter_state(self, encounter_id: str, raw_token: str) -> EncounterRecord | None:
        access = self.get_encounter_access(encounter_id=encounter_id, raw_token=raw_token)
        if access is None:
            return None
        return EncounterRecord(encounter_id=encounter_id, state=access.state)

    def get_encounter_access(self, encounter_id: str, raw_token: str) -> EncounterAccess | None:
        entry = self._encounters.get(encounter_id)
        if entry is None:
            return None

        raw_hash = hash_token(raw_token, self.server_salt)
        holder: str | None = None
        for candidate, token_hash in entry.tokens.items():
            if raw_hash == token_hash:
                holder = candidate
                break

        if holder is None:
            return None
        role = HOST if holder == HOST else PLAYER
        participant_id = None if role == HOST else holder
        state = self._snapshot(encounter_id, entry, role, participant_id)
        return EncounterAccess(encounter_id=encounter_id, role=role, participant_id=participant_id, state=state)

    def apply_action(self, encounter_id: str, raw_token: str, action: dict[str, Any]) -> ActionOutcome | None:
        access = self.get_encounter_access(encounter_id=encounter_id, raw_token=raw_token)
        if access is None:
            return None
        entry = self._encounters[encounter_id]
        roster = requested_roster(action) if access.role == HOST else None
        if roster is not None and set(roster) != set(entry.tokens) - {HOST}:
            raise InvalidEncounter("A restart must keep the participants the player tokens were issued for")
        try:
            applied = apply_clash_action(
                entry.coordinator,
                action,
                role=access.role,
                participant_id=access.participant_id,
            )
        except PermissionError:
            logger.warning("Refused %s from %s in %s", action.get("type"), access.role, encounter_id)
            raise

        messages = [event_message(event) for event in applied.events]
        entry.version += 1
        entry.updated_at = utc_now_iso()
        entry.log.append({"kind": "action", "role": access.role, "type": str(action.get("type", "")).upper()})
        entry.log.extend(messages)
        return ActionOutcome(result=applied.result, messages=messages, version=entry.version)

    def view_state(self, encounter_id: str, role: str, participant_id: str | None) -> dict[str, Any] | None:
        entry = self._encounters.get(encounter_id)
        if entry is None:
            return None
        return self._snapshot(encounter_id, entry, role, participant_id)

    def _snapshot(
        self,
        encounter_id: str,
        entry: _EncounterEntry,
        role: str,
        participant_id: str | None,
    ) -> dict[str, Any]:
        state = build_encounter_snapshot(entry.coordinator, viewer_id=participant_id, is_host=role == HOST)
        state.update(
            {
                "id": encounter_id,
                "version": entry.version,
                "log": list(entry.log),
                "meta": {"name": entry.name, "createdAt": entry.created_at, "updatedAt": entry.updated_at},
            }
        )
        return state


def create_store(server_salt: str, directory: ParticipantDirectory | None = None) -> EncounterStore:
    return InMemoryEncounterStore(server_salt=server_salt, directory=directory)
