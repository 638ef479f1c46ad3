"""Domain exceptions raised by the coordination modules and mapped to HTTP responses in main.py."""


class CoordinationError(Exception):
    status_code = 400


class DatabaseUnavailable(CoordinationError):
    status_code = 503


class NotClaimant(CoordinationError):
    """The actor tried to dismiss a ticket someone else has claimed."""

    status_code = 409

    def __init__(self, order_id: str, actor: str, claimed_by: str):
        self.order_id = order_id
        self.actor = actor
        self.claimed_by = claimed_by
        super().__init__(f"Order {order_id} is claimed by {claimed_by}, not {actor}")


class CooldownActive(CoordinationError):
    status_code = 429

    def __init__(self, table_number: int, retry_after: int):
        self.table_number = table_number
        self.retry_after = retry_after
        super().__init__(f"Waiter already called for table {table_number}, retry in {retry_after}s")


class InvalidRecipient(CoordinationError):
    pass
