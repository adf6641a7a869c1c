class PayoutError(Exception):
    """Base for failures scoped to a single payout request."""


class NotFound(PayoutError):
    pass


class InvalidState(PayoutError):
    pass


class DuplicatePayout(InvalidState):
    pass


class InvalidAmount(PayoutError, ValueError):
    pass


class Forbidden(PayoutError):
    pass


class StorageError(PayoutError):
    pass
