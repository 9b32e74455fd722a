# errors.py
class AuctionError(Exception):
    """Base for every failure the auction service reports to a caller."""

    status_code = 400
    code = "auction_error"
    default_message = "Auction operation failed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)

    def to_dict(self): return {"detail": self.message, "code": self.code}


# ---- taxonomy ----
class InvalidInput(AuctionError):
    code = "invalid_input"
    default_message = "Invalid input."


class NotFound(AuctionError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class Conflict(AuctionError):
    status_code = 409
    code = "conflict"
    default_message = "Conflicting request."


class InsufficientBalance(AuctionError):
    code = "insufficient_balance"
    default_message = "Insufficient balance."


class AuctionClosed(AuctionError):
    status_code = 403
    code = "auction_closed"
    default_message = "Auction is closed."


class PersistenceFailure(AuctionError):
    status_code = 500
    code = "persistence_failure"
    default_message = "Storage failure."


# ---- concrete failures ----
class InvalidName(InvalidInput):
    code = "invalid_name"
    default_message = "Name is required."


class InvalidAmount(InvalidInput):
    code = "invalid_amount"
    default_message = "Amount must be a finite whole number."


class UserNotFound(NotFound):
    code = "user_not_found"
    default_message = "User not found."


class ItemNotFound(NotFound):
    code = "item_not_found"
    default_message = "Item not found."


class DuplicateName(Conflict):
    code = "duplicate_name"
    default_message = "User name already exists."


class BidTooLow(Conflict):
    status_code = 400
    code = "bid_too_low"
    default_message = "Bid must be higher than the current highest bid."


class AlreadyOpen(Conflict):
    status_code = 400
    code = "already_open"
    default_message = "Auction is already open."


class AlreadyClosed(Conflict):
    status_code = 400
    code = "already_closed"
    default_message = "Auction is already closed."


class AuctionStillOpen(Conflict):
    code = "auction_still_open"
    default_message = "Close the auction before resetting the round."


class ResetFailed(PersistenceFailure):
    code = "reset_failed"
    default_message = "Could not reset the round."


class StoreError(PersistenceFailure):
    code = "store_error"
    default_message = "Ledger store is unreadable."
