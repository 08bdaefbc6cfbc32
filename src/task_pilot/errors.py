# errors.py
# Failure taxonomy for the orchestrator.
#
# There is no parse failure: unparseable model text is plain chat,
# not an error. An unrecognized tool name is logged, never raised.


class OrchestratorError(Exception):
    """Base class for every failure surfaced to the operator."""


class ResolutionError(OrchestratorError):
    """Raised when a name could not be resolved to an identifier."""

    def __init__(self, entity: str, name: str) -> None:
        self.entity = entity
        self.name = name
        super().__init__(f'Could not find {entity} "{name}"')


class InvocationError(OrchestratorError):
    """Raised when a tool endpoint answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class VerificationError(OrchestratorError):
    """Raised when a write succeeded over HTTP but its effect cannot be found."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Response received, but verification failed: {detail}")


class GateStateError(OrchestratorError):
    """Raised on an illegal Confirmation Gate transition."""


class TurnInProgressError(OrchestratorError):
    """Raised when a new turn starts before the current one has concluded."""
