from config.settings import (
    Config,
    StateFileError,
    load_config,
    read_current_user,
    set_current_user,
)

__all__ = [
    "Config",
    "StateFileError",
    "load_config",
    "read_current_user",
    "set_current_user",
]
