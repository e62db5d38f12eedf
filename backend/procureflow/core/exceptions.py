"""
ProcureFlow: typed error taxonomy.

Every domain error carries a machine-readable ``code`` and the HTTP status the
API layer answers with. Services raise these; ``procureflow.main`` turns them
into the response envelope.

    ProcurementError
    +-- ValidationError          400  malformed input
    +-- NotFound                 404  unknown request / order / message id
    +-- Forbidden                403  role or ownership mismatch
    +-- Conflict                 409  duplicate assignment, lost race
    +-- InvalidStateTransition   409  operation illegal in current status
    +-- ServerError              500  store / infrastructure failure
"""
from typing import Any


class ProcurementError(Exception):
    """Base class for all domain errors."""

    code: str = "PROCUREMENT_ERROR"
    status_code: int = 400

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class ValidationError(ProcurementError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(ProcurementError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class Forbidden(ProcurementError):
    code = "FORBIDDEN"
    status_code = 403


class Conflict(ProcurementError):
    code = "CONFLICT"
    status_code = 409


class InvalidStateTransition(ProcurementError):
    code = "INVALID_STATE_TRANSITION"
    status_code = 409

    def __init__(self, message: str, current: str | None = None, target: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message)


class ServerError(ProcurementError):
    """Infrastructure failure. The message shown to callers never includes the cause."""

    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
