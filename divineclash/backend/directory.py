"""Participant lookups supplied by the hosting table (names, defaults, mastery)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .models import Participant


class ParticipantDirectory(Protocol):
    def display_name(self, participant: Participant) -> str:
        """Return the name shown for a participant."""

    def default_vitality(self, participant: Participant) -> int | None:
        """Return the vitality configured on the actor, if any."""

    def default_stones(self, participant: Participant) -> tuple[int, int] | None:
        """Return the (attack, defense) stone counts configured on the actor, if any."""

    def mastery_rank(self, participant: Participant) -> int | None:
        """Return the actor's mastery rank, if any."""


@dataclass(frozen=True)
class ActorProfile:
    name: str | None = None
    vitality: int | None = None
    attack_stones: int | None = None
    defense_stones: int | None = None
    mastery_rank: int | None = None


@dataclass
class StaticDirectory:
    """Directory backed by a fixed mapping of actor id to profile."""

    profiles: dict[str, ActorProfile] = field(default_factory=dict)

    def _profile(self, participant: Participant) -> ActorProfile:
        key = participant.actor_id or participant.id
        return self.profiles.get(key, ActorProfile())

    def display_name(self, participant: Participant) -> str:
        profile = self._profile(participant)
        return profile.name or participant.name or f"User {participant.id}"

    def default_vitality(self, participant: Participant) -> int | None:
        return self._profile(participant).vitality

    def default_stones(self, participant: Participant) -> tuple[int, int] | None:
        profile = self._profile(participant)
        if profile.attack_stones is None and profile.defense_stones is None:
            return None
        return (profile.attack_stones or 0, profile.defense_stones or 0)

    def mastery_rank(self, participant: Participant) -> int | None:
        return self._profile(participant).mastery_rank
