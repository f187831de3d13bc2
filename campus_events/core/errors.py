from fastapi import status


class EventRuleError(Exception):
    """Base class for business-rule outcomes surfaced to the caller verbatim."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(EventRuleError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(EventRuleError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(EventRuleError):
    status_code = status.HTTP_409_CONFLICT


class RuleValidationError(EventRuleError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
