"""Error taxonomy for guard operations.

Every failure the service reports to its callers is a ``GuardError``; the
HTTP layer turns ``status_code`` and ``message`` into the response envelope.
"""

from typing import Iterable


class GuardError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedIdentifier(GuardError):
    status_code = 400
    default_message = "Invalid guard ID format"


class ValidationFailed(GuardError):
    """Aggregated field-level messages, in rule order."""

    status_code = 400

    def __init__(self, messages: Iterable[str], prefix: str = "Validation failed") -> None:
        self.messages = list(messages)
        super().__init__(f"{prefix}: {', '.join(self.messages)}")


class NotFound(GuardError):
    status_code = 404

    def __init__(self, entity: str = "Guard") -> None:
        super().__init__(f"{entity} not found")


class Conflict(GuardError):
    """Uniqueness violation; ``field`` is the public name of the offending field."""

    status_code = 409

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field} already exists")


class InvalidStateTransition(GuardError):
    status_code = 400


class InternalError(GuardError):
    status_code = 500


class RecordInvalid(Exception):
    """Raised from flush hooks when a row about to be written breaks a field rule."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages = list(messages)
        super().__init__(", ".join(self.messages))
