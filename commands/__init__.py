from commands.feeds import (
    cmd_addfeed,
    cmd_agg,
    cmd_browse,
    cmd_feeds,
    cmd_follow,
    cmd_following,
    cmd_unfollow,
)
from commands.registry import (
    BadSessionState,
    CommandContext,
    CommandError,
    CommandRegistry,
    NotLoggedIn,
    UnknownCommand,
    UsageError,
    login_required,
)
from commands.users import cmd_login, cmd_register, cmd_reset, cmd_users


def build_registry() -> CommandRegistry:
    registry = CommandRegistry()
    registry.register("login", cmd_login)
    registry.register("register", cmd_register)
    registry.register("reset", cmd_reset)
    registry.register("users", cmd_users)
    registry.register("agg", cmd_agg)
    registry.register("addfeed", cmd_addfeed)
    registry.register("feeds", cmd_feeds)
    registry.register("follow", cmd_follow)
    registry.register("following", cmd_following)
    registry.register("unfollow", cmd_unfollow)
    registry.register("browse", cmd_browse)
    return registry


__all__ = [
    "BadSessionState",
    "CommandContext",
    "CommandError",
    "CommandRegistry",
    "NotLoggedIn",
    "UnknownCommand",
    "UsageError",
    "build_registry",
    "login_required",
]
