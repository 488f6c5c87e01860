"""Domain error taxonomy.

Services raise these; the HTTP layer maps them to responses through a single
exception handler registered in ``planner.main``. ``Conflict`` and
``StoreUnavailable`` are transient (answered with ``Retry-After``), everything
else is permanent.
"""
from fastapi import status


class PlannerError(Exception):
    """Base class for every domain error."""

    status_code = status.HTTP_400_BAD_REQUEST
    transient = False

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class NotFound(PlannerError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(PlannerError):
    """CAS mismatch that survived the bounded retry."""

    status_code = status.HTTP_409_CONFLICT
    transient = True


class InvalidState(PlannerError):
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyMember(InvalidState):
    status_code = status.HTTP_409_CONFLICT


class NotMember(InvalidState):
    pass


class OptionNotFound(InvalidState):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidPriority(InvalidState):
    pass


class DuplicateEmail(InvalidState):
    status_code = status.HTTP_409_CONFLICT


class Forbidden(PlannerError):
    status_code = status.HTTP_403_FORBIDDEN


class DeliveryFailure(PlannerError):
    """The notification provider did not accept a message."""

    status_code = status.HTTP_502_BAD_GATEWAY


class StoreUnavailable(PlannerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    transient = True
