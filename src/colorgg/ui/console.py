"""Interactive operator console for the running ColorGG bot."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import discord
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from colorgg.datatypes.moderation_datatypes import ActionType
from colorgg.services import ModerationServices
from colorgg.util import discord_utils
from colorgg.util.logger import get_logger

# Box drawing helpers for aligned console output
BOX_WIDTH = 45


def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝",
    ]


logger = get_logger("console")

CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]

# Settings editable with ``set``; list settings take comma-separated ids
EDITABLE_SETTINGS = {
    "moderation_style": str,
    "warnings_before_action": int,
    "ban_request_user": str,
    "dm_on_action": bool,
    "ignored_channels": list,
    "ignored_roles": list,
    "trusted_roles": list,
}


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


def print_title(title: str) -> None:
    for line in box_title(title):
        console_print(line, "ansiblue")


class ConsoleControl:
    """Console-driven lifecycle controls plus access to the moderation services."""

    def __init__(self, services: ModerationServices | None = None) -> None:
        self.shutdown_event = asyncio.Event()
        self.restart_event = asyncio.Event()
        self._bot: discord.Bot | None = None
        self.services = services

    def set_bot(self, bot: discord.Bot | None) -> None:
        self._bot = bot

    @property
    def bot(self) -> discord.Bot | None:
        return self._bot

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def request_restart(self) -> None:
        self.restart_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()

    def is_restart_requested(self) -> bool:
        return self.restart_event.is_set()


async def close_bot_instance(bot: discord.Bot | None, *, log_close: bool = False) -> None:
    """Close the Discord bot instance if it is active."""
    if bot is None or bot.is_closed():
        return

    try:
        await bot.close()
        if log_close:
            logger.info("Discord bot connection closed.")
    except Exception as exc:
        logger.exception("Error while closing Discord bot: %s", exc)


async def _request_lifecycle_action(control: ConsoleControl, *, restart: bool) -> None:
    if restart:
        control.request_restart()
    control.request_shutdown()
    await close_bot_instance(control.bot)


def _require_services(control: ConsoleControl) -> ModerationServices | None:
    if control.services is None:
        console_print("Moderation services are not initialized.", "ansiyellow")
    return control.services


def parse_setting(key: str, raw: str):
    """Convert console text to the type of setting ``key``; raises ValueError on bad input."""
    kind = EDITABLE_SETTINGS[key]
    if kind is bool:
        lowered = raw.lower()
        if lowered in ("true", "on", "yes", "1"):
            return True
        if lowered in ("false", "off", "no", "0"):
            return False
        raise ValueError(f"expected true/false, got {raw!r}")
    if kind is int:
        return int(raw)
    if kind is list:
        return [int(item) for item in raw.split(",") if item.strip()]
    return raw


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    """Display available commands and their descriptions."""
    console_print("")
    for line in box_title("Console Commands Reference"):
        console_print(line, "ansigreen")

    for cmd in COMMANDS:
        aliases_str = f" (aliases: {', '.join(cmd.aliases)})" if cmd.aliases else ""
        console_print(f"\n  {cmd.name}{aliases_str}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    Usage: {cmd.usage}", "ansibrightblack")

    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    """Display bot status and moderation counters."""
    print_title("Bot Status")

    if control.bot:
        bot_status = "🟢 Connected" if not control.bot.is_closed() else "🔴 Disconnected"
        console_print(f"  Bot:        {bot_status}")
        console_print(f"  Latency:    {control.bot.latency * 1000:.0f}ms")
    else:
        console_print("  Bot:        🔴 Not initialized")

    if control.services is not None:
        snapshot = control.services.runtime.snapshot()
        console_print(f"  User:       {snapshot['username'] or '-'}")
        console_print(f"  Uptime:     {discord_utils.format_duration(int(snapshot['uptime_seconds']))}")
        console_print(f"  Guilds:     {snapshot['guilds']} ({snapshot['members']} members)")
        console_print(f"  Messages:   {snapshot['message_count']}")
        console_print(f"  Actions:    {snapshot['action_count']}")
        console_print(f"  Pending:    {len(snapshot['pending_bans'])} ban request(s)")

    console_print("")


async def cmd_guilds(control: ConsoleControl, args: list[str]) -> None:
    """List all guilds the bot is connected to."""
    if not control.bot or not control.bot.guilds:
        console_print("No guilds found or bot not connected.", "ansiyellow")
        return

    print_title(f"Connected Guilds ({len(control.bot.guilds)})")
    for guild in control.bot.guilds:
        console_print(f"  • {guild.name} (ID: {guild.id}, Members: {guild.member_count})")
    console_print("")


async def cmd_rules(control: ConsoleControl, args: list[str]) -> None:
    """List configured moderation rules."""
    services = _require_services(control)
    if services is None:
        return

    rules = services.rule_store.get_rules()
    print_title(f"Moderation Rules ({len(rules)})")
    for rule in rules:
        state = "on " if rule.enabled else "off"
        duration = f", {rule.timeout_duration}s" if rule.timeout_duration else ""
        console_print(
            f"  [{state}] {rule.id:<14} {rule.action.value}{duration} ({rule.severity.value})",
            "" if rule.enabled else "ansibrightblack",
        )
    console_print("")


async def cmd_rule(control: ConsoleControl, args: list[str]) -> None:
    """Enable, disable or retune a single rule."""
    services = _require_services(control)
    if services is None:
        return
    if len(args) < 2:
        console_print("Usage: rule <id> <enable|disable|action <kind>|timeout <seconds>>", "ansiyellow")
        return

    rule_id, verb = args[0], args[1].lower()
    if verb in ("enable", "disable"):
        patch = {"enabled": verb == "enable"}
    elif verb == "action" and len(args) > 2:
        kind = ActionType.parse(args[2])
        if kind.value != args[2].lower():
            console_print(f"Unknown action '{args[2]}'.", "ansired")
            return
        patch = {"action": kind.value}
    elif verb == "timeout" and len(args) > 2 and args[2].isdigit():
        patch = {"timeout_duration": int(args[2])}
    else:
        console_print("Usage: rule <id> <enable|disable|action <kind>|timeout <seconds>>", "ansiyellow")
        return

    updated = services.rule_store.update_rule(rule_id, patch)
    if updated is None:
        console_print(f"No rule with id '{rule_id}'.", "ansired")
        return
    console_print(f"Rule '{rule_id}' updated.", "ansigreen")


async def cmd_settings(control: ConsoleControl, args: list[str]) -> None:
    """Show global moderation settings."""
    services = _require_services(control)
    if services is None:
        return

    print_title("Moderation Settings")
    for key, value in services.rule_store.get_settings().to_dict().items():
        console_print(f"  {key:<24} {value}")
    console_print("")


async def cmd_set(control: ConsoleControl, args: list[str]) -> None:
    """Change one global moderation setting."""
    services = _require_services(control)
    if services is None:
        return
    if len(args) < 1 or args[0] not in EDITABLE_SETTINGS:
        console_print(f"Usage: set <{'|'.join(EDITABLE_SETTINGS)}> <value>", "ansiyellow")
        return

    key = args[0]
    try:
        value = parse_setting(key, " ".join(args[1:]))
    except ValueError as exc:
        console_print(f"Invalid value for {key}: {exc}", "ansired")
        return

    services.rule_store.update_settings({key: value})
    console_print(f"{key} set to {value!r}.", "ansigreen")


async def cmd_pending(control: ConsoleControl, args: list[str]) -> None:
    """List ban requests awaiting review."""
    services = _require_services(control)
    if services is None:
        return

    pending = services.ban_requests.pending_requests()
    if not pending:
        console_print("No pending ban requests.", "ansigreen")
        return

    print_title(f"Pending Ban Requests ({len(pending)})")
    for request in pending:
        restraint = "kicked" if request.kicked else "muted"
        delivery = request.delivery_route.value if request.delivered else "UNDELIVERED"
        console_print(
            f"  • {request.username} ({request.user_id}) in {request.guild_name}: {restraint}, {delivery}",
            "" if request.delivered else "ansired",
        )
        console_print(f"    {request.reason}", "ansibrightblack")
    console_print("")


async def cmd_warnings(control: ConsoleControl, args: list[str]) -> None:
    """Show or reset a user's warning count."""
    services = _require_services(control)
    if services is None:
        return
    if not args or not args[0].isdigit():
        console_print("Usage: warnings <user_id> [reset]", "ansiyellow")
        return

    user_id = int(args[0])
    if len(args) > 1 and args[1].lower() == "reset":
        services.ledger.reset(user_id)
        console_print(f"Warnings for {user_id} reset.", "ansigreen")
        return
    console_print(f"User {user_id} has {services.ledger.get(user_id)} warning(s).")


async def cmd_logs(control: ConsoleControl, args: list[str]) -> None:
    """Print recent audit records."""
    services = _require_services(control)
    if services is None:
        return

    count = int(args[0]) if args and args[0].isdigit() else 20
    entry_type = args[1] if len(args) > 1 else None
    records = services.audit_log.get_logs(entry_type=entry_type, limit=count)
    if not records:
        console_print("No audit records.", "ansibrightblack")
        return

    for record in records:
        detail = (
            record.get("action")
            or record.get("event")
            or record.get("error")
            or ("flagged" if record.get("flagged") else "clean")
        )
        who = record.get("username") or record.get("details") or record.get("context") or ""
        style = "ansired" if record["type"] == "error" else ""
        console_print(f"  {record['timestamp'][:19]} {record['type']:<12} {detail} {who}", style)


async def cmd_summaries(control: ConsoleControl, args: list[str]) -> None:
    """Show archived /summary results."""
    services = _require_services(control)
    if services is None:
        return

    summaries = services.runtime.recent_summaries()
    if not summaries:
        console_print("No chat summaries yet.", "ansibrightblack")
        return
    for summary in summaries:
        console_print(
            f"\n  #{summary.channel_name} in {summary.guild_name} ({summary.message_count} messages, {summary.timestamp[:19]})",
            "ansicyan",
        )
        console_print(f"  {summary.summary}")
    console_print("")


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    """Clear the console screen."""
    os.system("cls" if os.name == "nt" else "clear")
    console_print("Console cleared.", "ansigreen")


async def cmd_restart(control: ConsoleControl, args: list[str]) -> None:
    """Request a full bot restart."""
    console_print("Restart requested. Bot will shut down and restart...", "ansiyellow")
    await _request_lifecycle_action(control, restart=True)


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    """Request graceful bot shutdown."""
    console_print("Shutdown requested.", "ansiyellow")
    await _request_lifecycle_action(control, restart=False)


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command("help", cmd_help, ["h", "?"], "Show this help message with all available commands"),
    Command("status", cmd_status, ["stat", "info"], "Display bot status and moderation counters"),
    Command("guilds", cmd_guilds, ["servers", "g"], "List all guilds (servers) the bot is connected to"),
    Command("rules", cmd_rules, ["r"], "List moderation rules"),
    Command(
        "rule",
        cmd_rule,
        [],
        "Enable, disable or retune one rule",
        "rule <id> <enable|disable|action <kind>|timeout <seconds>>",
    ),
    Command("settings", cmd_settings, ["config"], "Show global moderation settings"),
    Command("set", cmd_set, [], "Change a global moderation setting", "set <key> <value>"),
    Command("pending", cmd_pending, ["bans"], "List ban requests awaiting review"),
    Command("warnings", cmd_warnings, ["warns"], "Show or reset a user's warning count", "warnings <user_id> [reset]"),
    Command("logs", cmd_logs, ["audit"], "Show recent audit records", "logs [count] [type]"),
    Command("summaries", cmd_summaries, [], "Show archived chat summaries"),
    Command("clear", cmd_clear, ["cls"], "Clear the console screen"),
    Command("restart", cmd_restart, ["reboot"], "Fully restart the entire bot"),
    Command("shutdown", cmd_shutdown, ["stop", "quit", "exit"], "Gracefully shut down the bot"),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Interpret and execute a single console command line."""
    if not command.strip():
        return

    parts = command.strip().split()
    cmd_name = parts[0].lower()
    args = parts[1:]

    for cmd in COMMANDS:
        if cmd.matches(cmd_name):
            try:
                await cmd.handler(control, args)
            except Exception as exc:
                logger.exception("Error executing command '%s': %s", cmd_name, exc)
                console_print(f"Error executing command: {exc}", "ansired")
            return

    console_print(f"Unknown command '{cmd_name}'. Type 'help' for available commands.", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive console until shutdown is requested."""
    session = PromptSession("> ")

    console_print("")
    for line in box_title("ColorGG Interactive Console"):
        console_print(line, "ansigreen")
    console_print("Type 'help' for available commands or 'exit' to quit.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
                if line.strip():
                    await handle_console_command(line, control)
            except (EOFError, KeyboardInterrupt):
                console_print("\nShutdown requested by user.", "ansiyellow")
                await _request_lifecycle_action(control, restart=False)
                break
            except Exception as exc:
                logger.exception("Error in console input loop: %s", exc)
                console_print(f"Error: {exc}", "ansired")


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console alongside the bot, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.request_shutdown()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
