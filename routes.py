# routes.py
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Union

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from auction_house import AuctionHouse
from config import settings
from errors import AuctionError
from logger import get_logger, setup_logging
from storage import JsonFileStore

setup_logging(settings.log_level, settings.log_file)
logger = get_logger("api")

# ---- Shared state ----
# All locking lives inside AuctionHouse; routes only translate.
HOUSE = AuctionHouse(
    store=JsonFileStore(settings.data_path),
    seed_path=settings.seed_path,
    starting_balance=settings.starting_balance,
    round_seconds=settings.round_seconds,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    HOUSE.ensure_seeded()
    yield


app = FastAPI(title="Multi-item Auction API", version="1.0.0", lifespan=lifespan)

Number = Union[int, float]


# ---- Schemas ----
class RegisterIn(BaseModel):
    name: Optional[str] = None


class BidIn(BaseModel):
    userId: Any = None                                # coerced and checked by AuctionHouse
    amount: Any = None


class BidRecord(BaseModel):
    itemId: int
    amount: Number
    timestamp: str


class UserRecord(BaseModel):
    id: int
    name: str
    balance: Number
    bids: List[BidRecord]


class UserOut(UserRecord):
    availableBalance: Number


class ItemOut(BaseModel):
    id: int
    name: str
    basePrice: Number
    highestBid: Number
    highestBidder: Optional[int] = None
    sold: bool


class ItemListRow(ItemOut):
    highestBidderName: Optional[str] = None


class BidOut(BaseModel):
    itemId: int
    highestBid: Number
    highestBidderName: str
    availableBalance: Number


class AuctionStateOut(BaseModel):
    isOpen: bool
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    secondsRemaining: int


class OpenOut(BaseModel):
    auction: str
    startTime: str


class ResultRow(BaseModel):
    itemId: int
    item: str
    winner: str
    finalBid: Number


class CloseOut(BaseModel):
    auction: str
    results: List[ResultRow]


class ResultBatch(BaseModel):
    at: str
    results: List[ResultRow]


class OkOut(BaseModel):
    ok: bool


# ---- errors ----
@app.exception_handler(AuctionError)
async def auction_error_handler(request, exc: AuctionError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ---- ROUTES ----
@app.post("/users/register", response_model=UserOut, status_code=201)
def register_user(pl: RegisterIn):
    """Create a participant with the starting balance."""
    return HOUSE.register_user(pl.name)


@app.get("/users/by-name", response_model=UserOut)
def user_by_name(name: Optional[str] = Query(None, description="Case-insensitive user name")):
    return HOUSE.find_user_by_name(name)


@app.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: str):
    return HOUSE.get_user(user_id)


@app.get("/users", response_model=List[UserRecord])
def list_users():
    return HOUSE.list_users()


@app.get("/items", response_model=List[ItemListRow])
def list_items(sort: Optional[str] = Query(None, description="'highestBid' sorts by leading bid, descending")):
    return HOUSE.list_items(sort_by_highest_bid=(sort == "highestBid"))


@app.get("/items/{item_id}", response_model=ItemOut)
def get_item(item_id: str):
    return HOUSE.get_item(item_id)


@app.post("/items/{item_id}/bid", response_model=BidOut)
def place_bid(item_id: str, pl: Optional[BidIn] = None):
    """Bid on an item; only accepted while the auction is open."""
    pl = pl or BidIn()
    return HOUSE.place_bid(item_id, pl.userId, pl.amount)


@app.post("/auction/openAll", response_model=OpenOut)
def open_auction():
    return HOUSE.open_auction()


@app.post("/auction/closeAll", response_model=CloseOut)
def close_auction():
    """Close bidding and settle every item with a leading bid."""
    return HOUSE.close_auction()


@app.get("/auction/state", response_model=AuctionStateOut)
def auction_state():
    return HOUSE.get_auction_state()


@app.post("/auction/resetRound", response_model=OkOut)
def reset_round():
    """Re-seed items and balances for the next round; the results log is kept."""
    return HOUSE.reset_round()


@app.get("/auction/results", response_model=List[ResultBatch])
def results_log():
    return HOUSE.list_results()


def main():
    logger.info(f"Server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
