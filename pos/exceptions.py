"""User-facing failures raised by the stores."""


class StoreError(Exception):
    """An operation failed; the message is safe to show to the user."""

    default_message = "The operation could not be completed. Please try again."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)


class NotFound(StoreError):
    default_message = "The record no longer exists."


class ReferenceInUse(StoreError):
    default_message = "This record is in use and cannot be deleted."


class InsufficientStock(StoreError):
    default_message = "Not enough stock to fulfil this order."


class InvalidTransition(StoreError):
    default_message = "This order cannot move to that status."


class InvalidInput(StoreError):
    default_message = "Please fill in all required fields."
