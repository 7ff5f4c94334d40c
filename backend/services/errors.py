"""Error taxonomy for kit generation, persistence and the wizard."""


class KitError(Exception):
    """Base class for every error the service surfaces to a caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class GenerationError(KitError):
    """The model call failed or returned a non-success status."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class ParseError(KitError):
    """Model output was not valid JSON. Absorbed by the generator, never surfaced."""


class PersistenceError(KitError):
    status_code = 503


class ExtractionError(KitError):
    status_code = 422


class InvalidInputError(KitError):
    status_code = 400


class InvalidTransitionError(KitError):
    status_code = 409


class WizardBusyError(KitError):
    status_code = 409


class SessionNotFoundError(KitError):
    status_code = 404


class KitNotFoundError(KitError):
    status_code = 404


class PermissionDeniedError(KitError):
    status_code = 403
