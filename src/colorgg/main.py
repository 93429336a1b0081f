"""
ColorGG Moderation Bot
======================

A Discord bot that sends chat messages to an AI classifier, enforces the
operator's moderation rules (warn, timeout, kick) and escalates the most
severe violations to a human reviewer as ban requests.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. COLORGG_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("COLORGG_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from colorgg.configuration.app_configuration import app_config
from colorgg.datatypes.audit_datatypes import BotEventEntry, ErrorEntry
from colorgg.services import ModerationServices, build_services
from colorgg.ui.console import ConsoleControl, close_bot_instance, console_session
from colorgg.util.logger import get_logger, handle_exception


logger = get_logger("main")

RESTART_EXIT_CODE = 42


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for reading message content, resolving members and sending DMs."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, services: ModerationServices) -> None:
    """Register all operational cogs with the bot."""
    from colorgg.bot.cogs import ban_review_listener, events_listener, message_listener, moderation_cmds

    events_listener.setup(discord_bot_instance, services)
    message_listener.setup(discord_bot_instance, services)
    ban_review_listener.setup(discord_bot_instance, services)
    moderation_cmds.setup(discord_bot_instance, services)

    logger.info("All cogs loaded successfully.")


def create_bot() -> tuple[discord.Bot, ModerationServices]:
    """Instantiate the Discord bot, its moderation services and cogs."""
    bot = discord.Bot(intents=build_intents())
    services = build_services(bot, app_config)
    load_cogs(bot, services)
    return bot, services


async def start_bot(bot: discord.Bot, services: ModerationServices, token: str) -> None:
    """Start the Discord bot and record the lifecycle around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.login(token)
        services.runtime.mark_started()
        services.audit_log.record(BotEventEntry(event="bot_started", details="Bot logged in successfully"))
        await bot.connect()
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot, services: ModerationServices) -> None:
    """Close the bot, record the stop and flush the audit store."""
    await close_bot_instance(bot, log_close=True)

    if services.runtime.running:
        services.runtime.mark_stopped()
        services.audit_log.record(BotEventEntry(event="bot_stopped", details="Bot shut down gracefully"))

    try:
        await services.close()
    except Exception as exc:
        logger.exception("Error while closing the audit store: %s", exc)

    logger.info("Shutdown complete.")


async def run_bot_session(bot: discord.Bot, services: ModerationServices, token: str, control: ConsoleControl) -> int:
    """Run the bot alongside the console, returning an exit code."""
    control.set_bot(bot)
    exit_code = 0

    try:
        async with console_session(control):
            try:
                await start_bot(bot, services, token)
            except asyncio.CancelledError:
                logger.info("Bot start cancelled; proceeding to shutdown")
            except discord.LoginFailure as exc:
                logger.critical("Discord rejected the bot token: %s", exc)
                exit_code = 1
            except Exception as exc:
                logger.critical("Discord bot runtime error: %s", exc)
                services.audit_log.record(ErrorEntry(error=str(exc), context="Bot runtime error"))
                exit_code = 1
    finally:
        control.set_bot(None)
        await shutdown_runtime(bot, services)

    return exit_code


async def async_main() -> int:
    """Bootstrap the bot, console and audit store, returning an exit code."""
    token = load_environment()

    try:
        bot, services = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        return 1

    try:
        logger.info("Opening audit database at %s", app_config.audit_db_path)
        await services.open_audit_store()
    except Exception as exc:
        logger.critical("Failed to initialize audit database: %s", exc)
        return 1

    control = ConsoleControl(services)
    exit_code = await run_bot_session(bot, services, token, control)

    if control.is_restart_requested():
        logger.info("Restart requested, returning exit code %d to trigger restart", RESTART_EXIT_CODE)
        return RESTART_EXIT_CODE

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code.

    Returns 42 when the operator asked for a restart; the process is then
    replaced in place.
    """
    sys.excepthook = handle_exception
    logger.info("Starting ColorGG moderation bot…")
    try:
        exit_code = asyncio.run(async_main())

        if exit_code == RESTART_EXIT_CODE:
            logger.info("Restart requested; replacing current process with new instance.")
            os.execv(sys.executable, [sys.executable] + sys.argv)
            return 0  # pragma: no cover

        return exit_code
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        if code is None:
            return 1
        try:
            return int(code)
        except (ValueError, TypeError):
            logger.warning("SystemExit.code is not an int (%r); defaulting to 1", code)
            return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    print(f"Exited with code: {main()}")
