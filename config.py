"""
Runtime settings for the auction server.

Every field can be overridden with an ``AUCTION_``-prefixed environment
variable, e.g. ``AUCTION_STARTING_BALANCE=500``.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

HERE = Path(__file__).resolve().parent
SEED_FILE = "seed_items.json"


def default_seed_path(here=HERE, prefix=sys.prefix):
    """Seed beside the modules (checkout, editable install) or under share/ (wheel install)."""
    local = Path(here) / SEED_FILE
    if local.exists():
        return local
    return Path(prefix) / "share" / "multi-item-auction" / SEED_FILE


def _env(name, default):
    return os.getenv(f"AUCTION_{name}", default)


@dataclass
class Settings:
    """Server configuration"""

    # Auction rules
    starting_balance: int = 1000  # Allotment every user gets per round
    round_seconds: int = 60  # Monitor countdown, informational only

    # Paths
    data_path: Path = Path("data") / "ledger.json"
    seed_path: Path = field(default_factory=default_seed_path)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # HTTP
    host: str = "127.0.0.1"
    port: int = 5080

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment, falling back to defaults."""
        defaults = cls()
        log_file = _env("LOG_FILE", None)
        return cls(
            starting_balance=int(_env("STARTING_BALANCE", defaults.starting_balance)),
            round_seconds=int(_env("ROUND_SECONDS", defaults.round_seconds)),
            data_path=Path(_env("DATA_PATH", defaults.data_path)),
            seed_path=Path(_env("SEED_PATH", defaults.seed_path)),
            log_level=str(_env("LOG_LEVEL", defaults.log_level)).upper(),
            log_file=Path(log_file) if log_file else None,
            host=_env("HOST", defaults.host),
            port=int(_env("PORT", defaults.port)),
        )


settings = Settings.from_env()
