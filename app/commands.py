from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from clients.baseclient import ChannelError
from clients.discord import DiscordClient
from enums import Expac, World
from hunttrain.codec import expac_from_choice, world_from_choice
from hunttrain.database import RedisStore
from hunttrain.errors import StoreError, ValidationError
from hunttrain.model import Train, resolve_completion_time
from hunttrain.publish import Publisher
from hunttrain.refresh import Refresher
from hunttrain.render import discord_time
from utils.make_logger import make_logger


def parse_timestamp(value: str) -> datetime:
    """
    Discordのタイムスタンプ記法(<t:1672531200:f>)またはUNIX時間を解釈する。
    コロンで区切られた真ん中の部分だけを見る。

    Raises
    ------
    ValidationError
        解釈できない場合
    """
    parts = value.strip().split(":")
    match parts:
        case [t]:
            timestamp = t
        case [_, t, _]:
            timestamp = t
        case _:
            raise ValidationError(f"Expected Discord timestamp: {value}")

    try:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except ValueError:
        raise ValidationError(f"Expected Discord timestamp: {value}") from None
    except (OverflowError, OSError):
        raise ValidationError(f"Timestamp out of range: {value}") from None


def validate_map_link(value: str | None) -> str | None:
    # リンクボタンに使うのでhttp(s)のみ
    if value is None:
        return None
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid map link: {value}")
    return value.strip()


def monitor_msg(base: str, success: bool) -> str:
    if success:
        return f"{base}."
    return f"Error: {base}, but not all monitor posts could be updated."


class TrainCommands:
    """
    スラッシュコマンドの処理。各コマンドはユーザーへの返答文を返す。

    Attributes
    ----------
    store : RedisStore
        データストア
    client : DiscordClient
        メッセージの送受信に使うクライアント
    refresher : Refresher
        変更後のモニター・ダッシュボード更新
    publisher : Publisher
        モニター・ダッシュボードの作成
    train_guild_id : int
        書き込みコマンドを許可するサーバー
    owner_id : int
        管理コマンドを許可するユーザー
    """

    def __init__(
        self,
        store: RedisStore,
        client: DiscordClient,
        refresher: Refresher,
        publisher: Publisher,
        train_guild_id: int,
        owner_id: int,
    ) -> None:
        self.store = store
        self.client = client
        self.refresher = refresher
        self.publisher = publisher
        self.train_guild_id = train_guild_id
        self.owner_id = owner_id
        self.logger = make_logger(type(self).__name__)

    def execute(
        self,
        name: str,
        options: dict[str, Any],
        guild_id: int | None = None,
        channel_id: int | None = None,
        user_id: int | None = None,
    ) -> str:
        """
        コマンド名と引数からコマンドを実行する。例外は返答文に変換する。

        Parameters
        ----------
        name : str
            サブコマンド名
        options : dict[str, Any]
            コマンド引数。値はDiscordから届いたまま
        guild_id : int | None
            実行されたサーバー。DMならNone
        channel_id : int | None
            実行されたチャンネル
        user_id : int | None
            実行したユーザー

        Returns
        -------
        str
            ユーザーへの返答
        """
        try:
            match name:
                case "scout":
                    return self.scout(
                        guild_id, *_train_args(options), options.get("map_link")
                    )
                case "start":
                    return self.start(
                        guild_id, *_train_args(options), options.get("map_link")
                    )
                case "done":
                    return self.done(
                        guild_id,
                        *_train_args(options),
                        completion_time=options.get("completion_time"),
                        force_time=options.get("force_time"),
                    )
                case "reset":
                    return self.reset(guild_id, *_train_args(options))
                case "create_monitor":
                    return self.create_monitor(
                        guild_id, _channel(channel_id), *_train_args(options)
                    )
                case "create_dashboard":
                    return self.create_dashboard(guild_id, _channel(channel_id))
                case "delete_message":
                    return self.delete_message(
                        user_id,
                        _snowflake(options, "channel_id"),
                        _snowflake(options, "message_id"),
                    )
                case _:
                    raise ValidationError(f"Unexpected command: {name}")
        except ValidationError as e:
            return f"Error: {e}"
        except StoreError:
            self.logger.error(f"Store error while running {name}", exc_info=True)
            return "Error: something went wrong while saving, please try again."
        except ChannelError:
            self.logger.error(f"Discord error while running {name}", exc_info=True)
            return "Error: could not reach Discord, please try again."
        except Exception:
            self.logger.error(f"Unexpected error while running {name}", exc_info=True)
            return "Error: something went wrong."

    def scout(
        self, guild_id: int | None, world: World, expac: Expac, map_link: str | None = None
    ) -> str:
        map_link = validate_map_link(map_link)
        train, success = self._mutate(guild_id, world, expac, lambda t: t.scout(map_link))
        scout_text = f"[scouted]({train.scout_map})" if train.scout_map else "scouted"
        return monitor_msg(f"{train.name} Train has been {scout_text}", success)

    def start(
        self, guild_id: int | None, world: World, expac: Expac, map_link: str | None = None
    ) -> str:
        map_link = validate_map_link(map_link)
        train, success = self._mutate(guild_id, world, expac, lambda t: t.start(map_link))
        return monitor_msg(f"{train.name} Train is now running", success)

    def done(
        self,
        guild_id: int | None,
        world: World,
        expac: Expac,
        completion_time: str | None = None,
        force_time: str | None = None,
    ) -> str:
        at = resolve_completion_time(
            parse_timestamp(completion_time) if completion_time else None,
            parse_timestamp(force_time) if force_time else None,
        )
        train, success = self._mutate(guild_id, world, expac, lambda t: t.done(at))
        return monitor_msg(f"{train.name} Train completed at {discord_time(at)}", success)

    def reset(self, guild_id: int | None, world: World, expac: Expac) -> str:
        train, success = self._mutate(guild_id, world, expac, lambda t: t.reset())
        return monitor_msg(f"{train.name} Train has been reset", success)

    def create_monitor(
        self, guild_id: int | None, channel_id: int, world: World, expac: Expac
    ) -> str:
        self._check_guild(guild_id)
        result = self.publisher.create_monitor(world, expac, channel_id)
        if not result.rendered:
            return (
                f"Error: A monitor for the {expac.label} train on {world.label} was created, "
                "but its post could not be updated. It will update on the next change."
            )
        return (
            f"Success! A monitor for the {expac.label} train on {world.label} has been created!"
        )

    def create_dashboard(self, guild_id: int | None, channel_id: int) -> str:
        self._check_guild(guild_id)
        result = self.publisher.create_dashboard(channel_id)
        if not result.rendered:
            return (
                "Error: A dashboard was created, but its post could not be updated. "
                "It will update on the next change."
            )
        return "Success! A dashboard has been created!"

    def delete_message(self, user_id: int | None, channel_id: int, message_id: int) -> str:
        if user_id != self.owner_id:
            raise ValidationError("Only the bot owner may delete messages")
        self.client.delete(channel_id, message_id)
        self.logger.info(f"Deleted message {message_id} in channel {channel_id}")
        return "Message deleted."

    def _check_guild(self, guild_id: int | None) -> None:
        if guild_id != self.train_guild_id:
            raise ValidationError("Not allowed in this guild/in DM")

    def _mutate(
        self,
        guild_id: int | None,
        world: World,
        expac: Expac,
        transition: Callable[[Train], Train],
    ) -> tuple[Train, bool]:
        """
        トレインを取得(なければ作成)して状態を変え、コミット後に表示を更新する。

        Returns
        -------
        tuple[Train, bool]
            変更後のトレインと、すべての表示を更新できたか
        """
        self._check_guild(guild_id)
        with self.store.transaction() as tx:
            train = tx.update_train(transition(tx.find_or_create(world, expac)))
        self.logger.info(f"{train.name} Train is now {train.status.label}")
        return train, self.refresher.refresh_train(train)


def _train_args(options: dict[str, Any]) -> tuple[World, Expac]:
    try:
        return (
            world_from_choice(str(options["world"])),
            expac_from_choice(str(options["expac"])),
        )
    except KeyError as e:
        raise ValidationError(f"Missing argument: {e.args[0]}") from None
    except ValueError as e:
        raise ValidationError(str(e)) from None


def _snowflake(options: dict[str, Any], name: str) -> int:
    try:
        return int(options[name])
    except KeyError:
        raise ValidationError(f"Missing argument: {name}") from None
    except ValueError:
        raise ValidationError(f"Invalid {name}: {options[name]}") from None


def _channel(channel_id: int | None) -> int:
    if channel_id is None:
        raise ValidationError("Command must be used in a channel")
    return channel_id
