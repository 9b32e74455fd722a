import json
import math
import threading
import time
from datetime import datetime, timezone
from enum import Enum, auto
from pathlib import Path

from errors import (
    AlreadyClosed, AlreadyOpen, AuctionClosed, AuctionStillOpen, BidTooLow,
    DuplicateName, InsufficientBalance, InvalidAmount, InvalidName,
    ItemNotFound, ResetFailed, UserNotFound,
)
from logger import get_logger

logger = get_logger("house")

STARTING_BALANCE = 1000


class User:
    def __init__(self, id, name, balance, bids=None):
        self.id = int(id)
        self.name = (name or "").strip()
        self.balance = balance
        self.bids = list(bids or [])

    @classmethod
    def from_dict(cls, d): return cls(d["id"], d["name"], d["balance"], d.get("bids"))

    def to_dict(self): return {
        "id": self.id, "name": self.name, "balance": self.balance, "bids": list(self.bids)}


class Item:
    def __init__(self, id, name, base_price, highest_bid=None, highest_bidder=None, sold=False):
        self.id = int(id)
        self.name = name
        self.base_price = base_price
        self.highest_bid = base_price if highest_bid is None else highest_bid
        self.highest_bidder = highest_bidder
        self.sold = bool(sold)

    @classmethod
    def from_dict(cls, d): return cls(d["id"], d["name"], d["basePrice"], d.get(
        "highestBid"), d.get("highestBidder"), d.get("sold", False))

    @classmethod
    def from_seed(cls, d):
        """Fresh, unbid item built from a seed record."""
        base = d["basePrice"]
        if isinstance(base, bool) or not isinstance(base, (int, float)) or not math.isfinite(base) or base < 0:
            raise ValueError(f"basePrice of item {d.get('id')!r} is not a non-negative number")
        return cls(d["id"], d["name"], base)

    def to_dict(self): return {
        "id": self.id, "name": self.name, "basePrice": self.base_price,
        "highestBid": self.highest_bid, "highestBidder": self.highest_bidder, "sold": self.sold}

    def __repr__(
        self): return f"Item(id={self.id}, name={self.name}, highest_bid={self.highest_bid}, highest_bidder={self.highest_bidder}, sold={self.sold})"


class Auction_State(Enum):
    CLOSED = auto()
    OPEN = auto()


class AuctionStatus:
    def __init__(self, is_open=False, start_time=None, end_time=None):
        self.is_open = bool(is_open)
        self.start_time = start_time
        self.end_time = end_time

    @property
    def state(self): return Auction_State.OPEN if self.is_open else Auction_State.CLOSED

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            return cls()
        return cls(d.get("isOpen", False), d.get("startTime"), d.get("endTime"))

    def to_dict(self): return {
        "isOpen": self.is_open, "startTime": self.start_time, "endTime": self.end_time}


# ---- reservation calculator ----
def reserved_amount(user_id, items):
    """Sum of the leading bids ``user_id`` currently holds across ``items``."""
    return sum(it.highest_bid for it in items if it.highest_bidder == user_id)


def available_balance(user, items):
    if user is None:
        return None
    return max(0, user.balance - reserved_amount(user.id, items))


# ---- input coercion ----
def _to_id(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return int(number) if math.isfinite(number) and number.is_integer() else None


def _to_amount(value):
    if value is None or isinstance(value, bool):
        raise InvalidAmount()
    if isinstance(value, int):
        return value
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise InvalidAmount()
    # Balances stay whole numbers
    if not math.isfinite(number) or not number.is_integer():
        raise InvalidAmount()
    return int(number)


def _find(records, record_id):
    return next((r for r in records if r.id == record_id), None)


def load_seed(path):
    """Read the item fixture; any problem with it is a ``ResetFailed``."""
    try:
        with Path(path).open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, list):
            raise ValueError("seed must be a list of items")
        return [Item.from_seed(r) for r in raw]
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Seed {path} unusable: {e}")
        raise ResetFailed(f"Could not reset the round: seed data unusable ({e}).") from e


class AuctionHouse:
    """
    Users, items and the auction lifecycle over a ``LedgerStore``.

    Every public operation runs under one re-entrant lock and reloads the
    collections it needs, so each call is a single read-modify-write unit and
    derived values (available balance, bidder names) are always recomputed.
    """

    def __init__(self, store, seed_path, starting_balance=STARTING_BALANCE, round_seconds=60, clock=time.time):
        self.store = store
        self.seed_path = Path(seed_path)
        self.starting_balance = int(starting_balance)
        self.round_seconds = int(round_seconds)
        self.clock = clock
        self._lock = threading.RLock()

    # ---- helpers ----
    def _now(self):
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat(timespec="milliseconds")

    def _users(self): return [User.from_dict(u) for u in self.store.load("users", [])]
    def _items(self): return [Item.from_dict(i) for i in self.store.load("items", [])]
    def _status(self): return AuctionStatus.from_dict(self.store.load("auction"))

    def _user_view(self, user, items):
        return {**user.to_dict(), "availableBalance": available_balance(user, items)}

    def _seconds_remaining(self, status):
        if not status.is_open or not status.start_time:
            return 0
        started = datetime.fromisoformat(status.start_time).timestamp()
        return max(0, int(started + self.round_seconds - self.clock()))

    def ensure_seeded(self):
        """Create any missing collection; items come from the seed fixture."""
        with self._lock:
            changes = {}
            if self.store.load("items") is None:
                changes["items"] = [it.to_dict() for it in load_seed(self.seed_path)]
            if self.store.load("users") is None:
                changes["users"] = []
            if self.store.load("auction") is None:
                changes["auction"] = AuctionStatus().to_dict()
            if self.store.load("results") is None:
                changes["results"] = []
            if changes:
                self.store.commit(changes)
                logger.info(f"Initialized collections: {', '.join(sorted(changes))}")

    # ---- users ----
    def register_user(self, name):
        if not isinstance(name, str) or not name.strip():
            raise InvalidName()
        clean = name.strip()
        with self._lock:
            users = self._users()
            if any(u.name.lower() == clean.lower() for u in users):
                raise DuplicateName()
            user = User(max((u.id for u in users), default=0) + 1, clean, self.starting_balance)
            users.append(user)
            self.store.save("users", [u.to_dict() for u in users])
            logger.info(f"Registered user {user.name} (id={user.id})")
            return self._user_view(user, self._items())

    def find_user_by_name(self, name):
        if not isinstance(name, str) or not name.strip():
            raise InvalidName()
        with self._lock:
            wanted = name.strip().lower()
            user = next((u for u in self._users() if u.name.lower() == wanted), None)
            if user is None:
                raise UserNotFound()
            return self._user_view(user, self._items())

    def get_user(self, user_id):
        with self._lock:
            user = _find(self._users(), _to_id(user_id))
            if user is None:
                raise UserNotFound()
            return self._user_view(user, self._items())

    def list_users(self):
        with self._lock:
            return self.store.load("users", [])

    def get_available_balance(self, user_id):
        """Available balance of ``user_id``, or None for an unknown user."""
        with self._lock:
            return available_balance(_find(self._users(), _to_id(user_id)), self._items())

    # ---- items ----
    def list_items(self, sort_by_highest_bid=False):
        with self._lock:
            items = self._items()
            names = {u.id: u.name for u in self._users()}
        if sort_by_highest_bid:
            items.sort(key=lambda it: it.highest_bid, reverse=True)
        out = []
        for it in items:
            bidder_name = None
            if it.highest_bidder is not None:
                bidder_name = names.get(it.highest_bidder, str(it.highest_bidder))
            out.append({**it.to_dict(), "highestBidderName": bidder_name})
        return out

    def get_item(self, item_id):
        with self._lock:
            item = _find(self._items(), _to_id(item_id))
            if item is None:
                raise ItemNotFound()
            return item.to_dict()

    # ---- bidding ----
    def place_bid(self, item_id, user_id, amount):
        with self._lock:
            if not self._status().is_open:
                raise AuctionClosed()
            items = self._items()
            users = self._users()
            item = _find(items, _to_id(item_id))
            if item is None:
                raise ItemNotFound()
            user = _find(users, _to_id(user_id))
            if user is None:
                raise UserNotFound()
            bid = _to_amount(amount)
            if bid <= item.highest_bid:
                logger.info(f"Rejected {user.name} on item {item.id}: {bid} <= {item.highest_bid}")
                raise BidTooLow()

            # A bidder already leading this item is replacing that reservation
            reserved = reserved_amount(user.id, items)
            if item.highest_bidder == user.id:
                reserved -= item.highest_bid
            if bid > user.balance - reserved:
                logger.info(f"Rejected {user.name} on item {item.id}: {bid} exceeds available {user.balance - reserved}")
                raise InsufficientBalance()

            item.highest_bid = bid
            item.highest_bidder = user.id
            user.bids.append({"itemId": item.id, "amount": bid, "timestamp": self._now()})
            self.store.commit({
                "items": [it.to_dict() for it in items],
                "users": [u.to_dict() for u in users],
            })
            logger.info(f"{user.name} leads item {item.id} at {bid}")
            return {
                "itemId": item.id,
                "highestBid": item.highest_bid,
                "highestBidderName": user.name,
                "availableBalance": available_balance(user, items),
            }

    # ---- lifecycle ----
    def get_auction_state(self):
        with self._lock:
            status = self._status()
        return {**status.to_dict(), "secondsRemaining": self._seconds_remaining(status)}

    def open_auction(self):
        with self._lock:
            status = self._status()
            if status.state == Auction_State.OPEN:
                raise AlreadyOpen()
            status = AuctionStatus(True, self._now(), None)
            self.store.save("auction", status.to_dict())
            logger.info(f"Auction opened at {status.start_time}")
            return {"auction": "open", "startTime": status.start_time}

    def _settle(self, users, items):
        """Turn every leading bid into a sale. Mutates ``users``/``items``."""
        results = []
        for item in items:
            if item.highest_bidder is None:
                continue
            item.sold = True
            winner = _find(users, item.highest_bidder)
            if winner is None:
                logger.warning(f"Item {item.id} led by unknown user {item.highest_bidder}; no debit")
                continue
            winner.balance = winner.balance - item.highest_bid
            results.append({"itemId": item.id, "item": item.name,
                           "winner": winner.name, "finalBid": item.highest_bid})
        return results

    def close_auction(self):
        with self._lock:
            status = self._status()
            if status.state == Auction_State.CLOSED:
                raise AlreadyClosed()
            users = self._users()
            items = self._items()
            results = self._settle(users, items)
            closed_at = self._now()
            status = AuctionStatus(False, status.start_time, closed_at)
            log = self.store.load("results", []) + [{"at": closed_at, "results": results}]
            self.store.commit({
                "users": [u.to_dict() for u in users],
                "items": [it.to_dict() for it in items],
                "auction": status.to_dict(),
                "results": log,
            })
            logger.info(f"Auction closed at {closed_at}: {len(results)} item(s) sold")
            return {"auction": "closed", "results": results}

    def reset_round(self):
        with self._lock:
            if self._status().is_open:
                raise AuctionStillOpen()
            items = load_seed(self.seed_path)
            users = [User(u.id, u.name, self.starting_balance) for u in self._users()]
            self.store.commit({
                "items": [it.to_dict() for it in items],
                "users": [u.to_dict() for u in users],
                "auction": AuctionStatus().to_dict(),
            })
            logger.info(f"Round reset: {len(items)} item(s), {len(users)} user(s)")
            return {"ok": True}

    def list_results(self):
        with self._lock:
            return self.store.load("results", [])
