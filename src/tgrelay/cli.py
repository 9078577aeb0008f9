from __future__ import annotations

import signal
from functools import partial
from pathlib import Path

import anyio
import typer

from . import __version__
from .config import ConfigError
from .history import ConversationState
from .llm import CompletionBackend, build_backend
from .logging import get_logger, setup_logging
from .loop import RelayLoop
from .settings import RelaySettings, load_settings
from .shutdown import ShutdownSignal
from .telegram.client import BotClient, TelegramClient
from .telegram.updates import UpdateSource
from .transcript import build_recorder

logger = get_logger(__name__)

# headroom over the long-poll wait before the HTTP client gives up
_POLL_HTTP_SLACK_S = 30


class StartupError(RuntimeError):
    pass


async def identify_bot(bot: BotClient) -> dict:
    me = await bot.get_me()
    if me is None:
        raise StartupError("telegram bot authorization failed")
    logger.info("telegram.authorized", account=me.get("username"), bot_id=me.get("id"))
    return me


async def _watch_signals(shutdown: ShutdownSignal) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info("relay.shutdown_requested", signal=signal.Signals(signum).name)
            shutdown.set()
            return


async def serve(
    settings: RelaySettings,
    *,
    bot: BotClient,
    backend: CompletionBackend,
    shutdown: ShutdownSignal,
    me: dict,
) -> None:
    state = ConversationState(
        settings.system_prompt, announce_policy=settings.announce
    )
    relay = RelayLoop(
        bot,
        backend,
        state,
        admin_id=settings.telegram.user_id,
        shutdown=shutdown,
        recorder=build_recorder(settings.transcript),
        presence_interval_s=settings.telegram.presence_interval_s,
        max_message_len=settings.telegram.max_message_len,
        bot_username=me.get("username"),
    )
    source = UpdateSource(
        bot,
        shutdown=shutdown,
        poll_timeout_s=settings.telegram.poll_timeout_s,
    )
    logger.info(
        "relay.started",
        engine=settings.engine,
        admin_id=settings.telegram.user_id,
        announce=settings.announce,
    )
    await relay.run(source.stream())


async def run_relay(settings: RelaySettings) -> None:
    backend = build_backend(settings)
    bot = TelegramClient(
        settings.telegram.bot_token.get_secret_value(),
        timeout_s=settings.telegram.poll_timeout_s + _POLL_HTTP_SLACK_S,
        debug=settings.telegram.debug,
    )
    shutdown = ShutdownSignal()
    try:
        me = await identify_bot(bot)
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_signals, shutdown)
            await serve(
                settings, bot=bot, backend=backend, shutdown=shutdown, me=me
            )
            tg.cancel_scope.cancel()
    finally:
        await bot.close()
        await backend.close()


async def check_setup(settings: RelaySettings) -> dict:
    backend = build_backend(settings)
    bot = TelegramClient(settings.telegram.bot_token.get_secret_value())
    try:
        return await identify_bot(bot)
    finally:
        await bot.close()
        await backend.close()


def _load_settings_or_exit(config: Path | None, engine: str | None) -> RelaySettings:
    try:
        settings, config_path = load_settings(config, engine_override=engine)
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    logger.debug("config.loaded", path=str(config_path) if config_path else None)
    return settings


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


_CONFIG_OPTION = typer.Option(
    None, "--config", help="Path to tgrelay.toml.", dir_okay=False
)
_ENGINE_OPTION = typer.Option(
    None, "--engine", help="Completion backend to use (openai or ollama)."
)
_DEBUG_OPTION = typer.Option(False, "--debug", help="Log debug output.")


def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config: Path | None = _CONFIG_OPTION,
    engine: str | None = _ENGINE_OPTION,
    debug: bool = _DEBUG_OPTION,
) -> None:
    """Relay Telegram messages from one user to a chat completion backend."""
    if ctx.invoked_subcommand is not None:
        return
    setup_logging(debug=debug)
    settings = _load_settings_or_exit(config, engine)
    try:
        anyio.run(partial(run_relay, settings))
    except (ConfigError, StartupError) as e:
        logger.error("relay.startup_failed", error=str(e))
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        raise typer.Exit(code=130) from None


def check(
    config: Path | None = _CONFIG_OPTION,
    engine: str | None = _ENGINE_OPTION,
    debug: bool = _DEBUG_OPTION,
) -> None:
    """Validate the config and the bot token, then exit."""
    setup_logging(debug=debug)
    settings = _load_settings_or_exit(config, engine)
    try:
        me = anyio.run(partial(check_setup, settings))
    except (ConfigError, StartupError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"bot: @{me.get('username')}")
    typer.echo(f"engine: {settings.engine}")
    typer.echo(f"user_id: {settings.telegram.user_id}")


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        invoke_without_command=True,
        help="Single-user Telegram relay for chat completion backends.",
    )
    app.command(name="check")(check)
    app.callback()(app_main)
    return app


def main() -> None:
    app = create_app()
    app()
