"""Domain errors raised by the trade core and mapped to HTTP status codes in api.main."""


class TradeOpsError(Exception):
    """Base class for trade core errors."""


class NotFoundError(TradeOpsError, LookupError):
    """Referenced need, LC, vessel, contract or allocation does not exist."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class DomainValidationError(TradeOpsError, ValueError):
    """Malformed input: non-positive quantity, missing reference, bad date window."""


class TransactionFailure(TradeOpsError):
    """A cascaded write failed; the whole triggering operation was rolled back."""
