"""Custom exception classes for chit fund services.

Provides domain-specific exceptions for clear error handling and reporting.
"""


class ChitFundError(Exception):
    """Base exception for chit fund errors."""

    pass


class NotFoundError(ChitFundError):
    """A fund, enrollment or payment lookup returned nothing."""

    pass


class FundNotFoundError(NotFoundError):
    """Fund does not exist."""

    def __init__(self, fund_id: int):
        self.fund_id = fund_id
        super().__init__(f"Fund {fund_id} not found")


class EnrollmentNotFoundError(NotFoundError):
    """User is not enrolled in the fund."""

    def __init__(self, user_id: int, fund_id: int):
        self.user_id = user_id
        self.fund_id = fund_id
        super().__init__(f"User {user_id} is not enrolled in fund {fund_id}")


class UserNotFoundError(NotFoundError):
    """User does not exist."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class FundClosedError(FundNotFoundError):
    """Fund exists but no longer accepts members."""

    def __init__(self, fund_id: int):
        self.fund_id = fund_id
        NotFoundError.__init__(self, f"Fund {fund_id} is not active")


class AlreadyEnrolledError(ChitFundError):
    """User is already enrolled in the fund."""

    def __init__(self, user_id: int, fund_id: int):
        self.user_id = user_id
        self.fund_id = fund_id
        super().__init__(f"User {user_id} is already enrolled in fund {fund_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment does not exist."""

    def __init__(self, payment_id: int):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} not found")


class PaymentValidationError(ChitFundError):
    """Payment data rejected before it was recorded."""

    pass


class ScheduleMismatchError(PaymentValidationError):
    """Month already has payments recorded under a different schedule."""

    pass


class PaymentLimitError(PaymentValidationError):
    """Month already holds the maximum number of payments for its schedule."""

    pass


class SyncError(ChitFundError):
    """Writing derived enrollment aggregates back to storage failed."""

    pass
