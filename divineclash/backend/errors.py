"""Domain errors raised by the stone ledger and the encounter coordinator."""

from __future__ import annotations


class ClashError(Exception):
    """Base class for recoverable encounter errors."""


class UnknownParticipant(ClashError):
    def __init__(self, participant_id: str) -> None:
        super().__init__(f"Unknown participant: {participant_id}")
        self.participant_id = participant_id


class InsufficientStones(ClashError):
    def __init__(self, available: int, requested: int) -> None:
        super().__init__(f"Not enough stones! Available: {available}, Allocated: {requested}")
        self.available = available
        self.requested = requested


class InvalidPhase(ClashError):
    def __init__(self, operation: str, phase: str) -> None:
        super().__init__(f"{operation} is not allowed in phase {phase}")
        self.operation = operation
        self.phase = phase


class InvalidEncounter(ClashError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidAction(ClashError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
