"""
Server runner for the MultiHost control API.

Runs uvicorn and the Discord client on the same event loop so the
coordinator, the voice adapter and the HTTP handlers share one loop.
"""

import asyncio
from typing import Optional

import uvicorn

from ..config import MultiHostConfig, config_manager
from ..core import EventSessionManager
from ..infrastructure import setup_logging
from ..infrastructure.exceptions import MultiHostError
from ..platform import DiscordVoiceAdapter
from .app import create_app

logger = setup_logging(
    component_name="control_api",
    log_file="logs/multihost.log",
)


async def run_server(config: Optional[MultiHostConfig] = None, reload: bool = False):
    """
    Run the control API together with the Discord client.

    Args:
        config: Configuration to use; loaded from the environment if omitted
        reload: Enable auto-reload for development

    Raises:
        TokenError: If DISCORD_BOT_TOKEN is not configured
    """
    config = config or config_manager.get_config()
    token = config.require_token()

    adapter = DiscordVoiceAdapter(voice_timeout=config.join_timeout_seconds)
    manager = EventSessionManager.from_config(adapter, config)
    app = create_app(manager, adapter)

    server = uvicorn.Server(
        uvicorn.Config(
            app=app,
            host=config.api_host,
            port=config.api_port,
            reload=reload,
            log_level=config.log_level.lower(),
        )
    )

    logger.info(f"Starting MultiHost API server on {config.api_host}:{config.api_port}")
    bot_task = asyncio.create_task(adapter.start(token), name="discord-client")
    try:
        await server.serve()
    finally:
        logger.info("Shutting down: ending live sessions")
        await manager.end_all_sessions()
        await adapter.close()
        if not bot_task.done():
            bot_task.cancel()
        try:
            await bot_task
        except asyncio.CancelledError:
            pass


def main():
    """Main function to run the API server."""
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("API server shutdown requested")
    except MultiHostError as e:
        logger.critical(f"Failed to start API server: {e}")
        raise
    except Exception as e:
        logger.critical(f"Failed to start API server: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
