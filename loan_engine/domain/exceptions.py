"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidInputError(DomainException, TypeError):
    """Engine called with the wrong kind of argument (caller bug)"""

    pass


class InvalidLoanOperationError(DomainException):
    """Lifecycle rule broken: bad payment, double refinance, invalid term"""

    pass


class InvalidRecordError(DomainException):
    """Raw loan/payment/expense record could not be converted"""

    pass
