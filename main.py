from dotenv import load_dotenv

from app.commands import TrainCommands
from app.interactions import InteractionHandler, command_definitions
from clients.discord import DiscordClient
from config import Settings
from hunttrain.database import RedisStore
from hunttrain.publish import Publisher
from hunttrain.refresh import Refresher
from utils.make_logger import clear_log_file, make_logger
from utils.server.run import create_app, server_run

logger = make_logger("Main")


def main():
    settings = Settings.from_env()

    store = RedisStore.from_settings(settings)
    client = DiscordClient(settings.discord_token)
    commands = TrainCommands(
        store=store,
        client=client,
        refresher=Refresher(store, client, max_workers=settings.refresh_workers),
        publisher=Publisher(store, client),
        train_guild_id=settings.train_guild_id,
        owner_id=settings.owner_id,
    )
    handler = InteractionHandler(
        commands,
        client,
        settings.application_id,
        settings.public_key,
        max_workers=settings.command_workers,
    )

    logger.info("Initializing...")
    client.register_guild_commands(
        settings.application_id, settings.train_guild_id, command_definitions()
    )

    logger.info(f"Listening for interactions on port {settings.port}")
    server_run(create_app(handler), port=settings.port)


if __name__ == "__main__":
    load_dotenv()
    clear_log_file()
    main()
