"""
Domain error taxonomy shared by the event log and the inventory ledger.

Every rejected mutation leaves persisted state exactly as it was before the
call. Running out of stock is not an error: ``reserve`` returns ``False``.
"""


class DomainError(Exception):
    """Base class for errors raised by the core."""

    status_code = 400


class ValidationError(DomainError, ValueError):
    """Malformed event type, payload, quantity or metadata."""

    status_code = 400


class NotFoundError(DomainError, LookupError):
    """A referenced event or (team, sku) pair does not exist."""

    status_code = 404


class ConcurrentModificationError(DomainError):
    """Optimistic-lock version mismatch. The caller decides whether to retry."""

    status_code = 409

    def __init__(self, team_id: str, sku: str, expected_version: int):
        self.team_id = team_id
        self.sku = sku
        self.expected_version = expected_version
        super().__init__(f"Concurrent modification detected for {team_id}/{sku} at version {expected_version}")


class InvalidStateError(DomainError):
    """The mutation would break a ledger invariant; nothing was written."""

    status_code = 409


class EventIdConflictError(DomainError):
    """A caller-supplied event id is already taken by another team's event."""

    status_code = 409

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event id {event_id} is already in use")
