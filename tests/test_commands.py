from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from app.commands import TrainCommands, monitor_msg, parse_timestamp, validate_map_link
from clients.baseclient import ChannelError
from enums import Expac, Status, World
from hunttrain.errors import StoreError, ValidationError
from hunttrain.publish import PublishResult

GUILD = 1000
OWNER = 7
MAP = "https://example.com/map.png"


@pytest.fixture
def refresher():
    refresher = MagicMock()
    refresher.refresh_train.return_value = True
    return refresher


@pytest.fixture
def commands(store, refresher):
    return TrainCommands(
        store=store,
        client=MagicMock(),
        refresher=refresher,
        publisher=MagicMock(),
        train_guild_id=GUILD,
        owner_id=OWNER,
    )


def train_options(**extra) -> dict:
    return {"world": "maduin", "expac": "EW", **extra}


def test_parse_timestamp():
    expected = datetime(2023, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("<t:1672531200:f>") == expected
    assert parse_timestamp("1672531200") == expected
    assert parse_timestamp(" <t:1672531200:R> ") == expected


@pytest.mark.parametrize("value", ["<t:1672531200>", "yesterday", "<t:abc:f>", "1:2:3:4"])
def test_parse_timestamp_rejects(value):
    with pytest.raises(ValidationError):
        parse_timestamp(value)


def test_validate_map_link():
    assert validate_map_link(None) is None
    assert validate_map_link(MAP) == MAP
    with pytest.raises(ValidationError):
        validate_map_link("not a url")
    with pytest.raises(ValidationError):
        validate_map_link("ftp://example.com/map")


def test_monitor_msg():
    assert monitor_msg("Done", True) == "Done."
    assert monitor_msg("Done", False) == (
        "Error: Done, but not all monitor posts could be updated."
    )


def test_scout(commands, store, refresher):
    reply = commands.execute("scout", train_options(map_link=MAP), guild_id=GUILD)

    assert reply == f"Maduin Endwalker Train has been [scouted]({MAP})."
    train = store.find_train(World.MADUIN, Expac.EW)
    assert train.status is Status.SCOUTED
    refresher.refresh_train.assert_called_once_with(train)


def test_partial_refresh_failure_is_reported(commands, refresher):
    refresher.refresh_train.return_value = False
    reply = commands.execute("scout", train_options(), guild_id=GUILD)
    assert reply == (
        "Error: Maduin Endwalker Train has been scouted, "
        "but not all monitor posts could be updated."
    )


def test_start_preserves_scout_map(commands, store):
    commands.execute("scout", train_options(map_link=MAP), guild_id=GUILD)
    reply = commands.execute("start", train_options(), guild_id=GUILD)

    assert reply == "Maduin Endwalker Train is now running."
    train = store.find_train(World.MADUIN, Expac.EW)
    assert train.status is Status.RUNNING
    assert train.scout_map == MAP


def test_done_with_force_time(commands, store):
    reply = commands.execute(
        "done", train_options(force_time="<t:1672531200:f>"), guild_id=GUILD
    )

    completed = datetime(2023, 1, 1, tzinfo=timezone.utc) - timedelta(hours=6)
    assert reply == f"Maduin Endwalker Train completed at <t:{int(completed.timestamp())}:f>."
    train = store.find_train(World.MADUIN, Expac.EW)
    assert train.status is Status.WAITING
    assert train.last_run == completed


def test_done_rejects_both_times(commands, store, refresher):
    reply = commands.execute(
        "done",
        train_options(completion_time="1672531200", force_time="1672531200"),
        guild_id=GUILD,
    )

    assert reply == "Error: Cannot provide both completion_time and force_time"
    assert store.find_train(World.MADUIN, Expac.EW) is None
    refresher.refresh_train.assert_not_called()


def test_reset(commands, store):
    commands.execute("done", train_options(), guild_id=GUILD)
    reply = commands.execute("reset", train_options(), guild_id=GUILD)

    assert reply == "Maduin Endwalker Train has been reset."
    train = store.find_train(World.MADUIN, Expac.EW)
    assert (train.status, train.scout_map, train.last_run) == (Status.UNKNOWN, None, None)


def test_invalid_map_link_is_rejected_before_mutation(commands, store):
    reply = commands.execute("scout", train_options(map_link="nope"), guild_id=GUILD)
    assert reply == "Error: Invalid map link: nope"
    assert store.find_train(World.MADUIN, Expac.EW) is None


def test_wrong_guild_is_rejected(commands, store):
    reply = commands.execute("start", train_options(), guild_id=1)
    assert reply == "Error: Not allowed in this guild/in DM"
    assert store.find_train(World.MADUIN, Expac.EW) is None


def test_unknown_world(commands):
    reply = commands.execute("start", {"world": "atlantis", "expac": "EW"}, guild_id=GUILD)
    assert reply == "Error: Unknown world: atlantis"


def test_store_error_is_generic(commands, store):
    store.transaction = MagicMock(side_effect=StoreError("down"))
    reply = commands.execute("start", train_options(), guild_id=GUILD)
    assert reply == "Error: something went wrong while saving, please try again."


def test_create_monitor(commands):
    commands.publisher.create_monitor.return_value = PublishResult(MagicMock(), True)
    reply = commands.execute("create_monitor", train_options(), guild_id=GUILD, channel_id=5)

    assert reply == "Success! A monitor for the Endwalker train on Maduin has been created!"
    commands.publisher.create_monitor.assert_called_once_with(World.MADUIN, Expac.EW, 5)


def test_create_monitor_render_failure(commands):
    commands.publisher.create_monitor.return_value = PublishResult(MagicMock(), False)
    reply = commands.execute("create_monitor", train_options(), guild_id=GUILD, channel_id=5)
    assert reply.startswith("Error: A monitor for the Endwalker train on Maduin was created")


def test_create_dashboard_requires_home_guild(commands):
    reply = commands.execute("create_dashboard", {}, guild_id=None, channel_id=5)
    assert reply == "Error: Not allowed in this guild/in DM"
    commands.publisher.create_dashboard.assert_not_called()


def test_create_dashboard_send_failure(commands):
    commands.publisher.create_dashboard.side_effect = ChannelError("forbidden", 403)
    reply = commands.execute("create_dashboard", {}, guild_id=GUILD, channel_id=5)
    assert reply == "Error: could not reach Discord, please try again."


def test_delete_message_owner_only(commands):
    options = {"channel_id": "5", "message_id": "6"}
    assert commands.execute("delete_message", options, user_id=1) == (
        "Error: Only the bot owner may delete messages"
    )
    commands.client.delete.assert_not_called()

    assert commands.execute("delete_message", options, user_id=OWNER) == "Message deleted."
    commands.client.delete.assert_called_once_with(5, 6)
