"""
Command registry and the login gate.

Every handler has the same shape: handler(ctx, cmd_name, *args).
Handlers wrapped in login_required get the current User injected after
cmd_name: handler(ctx, cmd_name, user, *args).
"""

import functools
from dataclasses import dataclass
from typing import Callable

from config.settings import Config, StateFileError, read_current_user
from fetcher.base import FeedFetcher
from models import User
from storage.db import Storage


class CommandError(Exception):
    """Raised when a command can't do what it was asked. Exit status 1."""
    pass


class UsageError(CommandError):
    pass


class NotLoggedIn(CommandError):
    pass


class UnknownCommand(CommandError):
    pass


class BadSessionState(CommandError):
    pass


@dataclass
class CommandContext:
    config: Config
    storage: Storage
    fetcher: FeedFetcher


Handler = Callable[..., None]


class CommandRegistry:
    def __init__(self):
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler):
        self._handlers[name] = handler

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def run(self, ctx: CommandContext, name: str, *args: str):
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownCommand(f"unknown command: {name}")
        handler(ctx, name, *args)


def _current_user_name(ctx: CommandContext) -> str | None:
    try:
        return read_current_user(ctx.config)
    except StateFileError as e:
        raise BadSessionState(f"{e}, log in again to rewrite it") from e


def current_user(ctx: CommandContext) -> User | None:
    name = _current_user_name(ctx)
    if name is None:
        return None
    return ctx.storage.get_user_by_name(name)


def login_required(handler: Handler) -> Handler:
    """Resolve the logged-in user before calling the handler."""
    @functools.wraps(handler)
    def wrapper(ctx: CommandContext, cmd_name: str, *args: str):
        user_name = _current_user_name(ctx)
        if user_name is None:
            raise NotLoggedIn(f"{cmd_name} requires a logged in user, run `login <name>` first")
        user = ctx.storage.get_user_by_name(user_name)
        if user is None:
            raise NotLoggedIn(f"user {user_name} not found, run `register <name>` or `login <name>`")
        return handler(ctx, cmd_name, user, *args)

    return wrapper
