"""User commands: register, login, reset, users."""

import logging

from commands.registry import CommandContext, CommandError, UsageError, current_user
from config.settings import set_current_user

log = logging.getLogger(__name__)


def cmd_register(ctx: CommandContext, cmd_name: str, *args: str):
    if len(args) != 1:
        raise UsageError(f"usage: {cmd_name} <name>")

    name = args[0]
    if ctx.storage.get_user_by_name(name):
        raise CommandError(f"user {name} already exists")

    user = ctx.storage.create_user(name)
    set_current_user(ctx.config, user.name)
    print(f"User {user.name} created successfully!")
    log.debug(f"Created user {user.id}")


def cmd_login(ctx: CommandContext, cmd_name: str, *args: str):
    if len(args) != 1:
        raise UsageError(f"usage: {cmd_name} <name>")

    name = args[0]
    if not ctx.storage.get_user_by_name(name):
        raise CommandError(f"user {name} not found")

    set_current_user(ctx.config, name)
    print("User switched successfully!")


def cmd_reset(ctx: CommandContext, cmd_name: str, *args: str):
    if args:
        raise UsageError(f"usage: {cmd_name}")

    deleted = ctx.storage.delete_all_users()
    set_current_user(ctx.config, None)
    print(f"Database reset successfully! ({deleted} users removed)")


def cmd_users(ctx: CommandContext, cmd_name: str, *args: str):
    if args:
        raise UsageError(f"usage: {cmd_name}")

    me = current_user(ctx)
    for user in ctx.storage.get_users():
        if me and user.id == me.id:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")
