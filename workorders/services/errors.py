class WorkflowError(Exception):
    """Base class for every rejection raised by a stage operation.

    ``status_code`` is the HTTP status the API layer answers with; the
    message is always shown to the user verbatim.
    """

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class WorkflowValidationError(WorkflowError):
    """Missing field, HP sum mismatch, negative or non-integer quantity."""


class StageFlowError(WorkflowError):
    """Operation not allowed at the work order's current stage."""


class StageAccessDenied(WorkflowError):
    """Wrong role or location for the acting user."""

    status_code = 403


class CapacityExceeded(WorkflowError):
    """Requested quantity exceeds what is available upstream."""

    status_code = 409


class WorkOrderNotFound(WorkflowError):
    status_code = 404


class RemarkNotFound(WorkflowError):
    status_code = 404
