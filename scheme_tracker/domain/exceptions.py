"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidScheduleError(DomainException):
    """Scheme terms are not usable (non-positive amount or duration)"""

    pass


class NotFoundError(DomainException):
    """Holder or scheme is missing from the store"""

    pass


class DispatchError(DomainException):
    """Notification channel failed to deliver a message"""

    pass


class ComputationError(DomainException):
    """Progress arithmetic produced or received a non-finite value"""

    pass
