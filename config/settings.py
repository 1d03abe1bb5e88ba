"""
Configuration. All settings from env vars, plus a tiny JSON state file
that remembers who is logged in.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

# Auto-load .env file so you don't need `export $(grep ...)` every time
from dotenv import load_dotenv
load_dotenv()


@dataclass
class Config:
    # Storage
    db_path: Path = Path(os.environ.get("GATOR_DB_PATH", "data/gator.db"))

    # Session state: {"current_user_name": "..."}
    state_path: Path = Path(
        os.environ.get("GATOR_STATE_PATH", str(Path.home() / ".gatorconfig.json"))
    )

    # Fetching. A fetch that exceeds the timeout fails its cycle.
    fetch_timeout: float = float(os.environ.get("GATOR_FETCH_TIMEOUT", "15"))
    user_agent: str = os.environ.get("GATOR_USER_AGENT", "gator/0.1")

    # Upper bound on cycles running at the same time
    max_workers: int = int(os.environ.get("GATOR_MAX_WORKERS", "4"))

    # Default number of posts shown by `browse`
    browse_limit: int = int(os.environ.get("GATOR_BROWSE_LIMIT", "2"))


class StateFileError(ValueError):
    """Raised when the session state file exists but can't be used."""
    pass


def load_config() -> Config:
    return Config()


def read_current_user(config: Config) -> str | None:
    """Name of the logged-in user, or None if nobody is."""
    try:
        data = json.loads(config.state_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        raise StateFileError(f"Corrupt state file {config.state_path}: {e}") from e
    if not isinstance(data, dict):
        raise StateFileError(f"Corrupt state file {config.state_path}: expected a JSON object")
    name = data.get("current_user_name")
    return name if isinstance(name, str) and name else None


def set_current_user(config: Config, user_name: str | None):
    """Persist the logged-in user. None logs out."""
    config.state_path.parent.mkdir(parents=True, exist_ok=True)
    data = {"current_user_name": user_name}
    config.state_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
