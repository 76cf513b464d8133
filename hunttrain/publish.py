from dataclasses import dataclass

from clients.baseclient import BaseChannelClient, MessageContent
from enums import Expac, World
from utils.make_logger import make_logger

from .database import RedisStore
from .errors import StoreError
from .model import Dashboard, Monitor
from .render import render_dashboard, render_monitor


@dataclass(frozen=True)
class PublishResult:
    """
    Attributes
    ----------
    projection : Monitor | Dashboard
        作成した記録
    rendered : bool
        初期化メッセージを本来の内容に書き換えられたか。
        Falseでも記録は残っており、次回の更新で内容が直る。
    """

    projection: Monitor | Dashboard
    rendered: bool


class Publisher:
    """
    モニターとダッシュボードの作成。

    1. トランザクション開始
    2. 初期化メッセージを送信してIDを得る
    3. そのIDで記録を作る
    4. コミット
    5. コミット後にメッセージを本来の内容に書き換える

    コミットに失敗すると初期化メッセージだけが残るが、これは無害。
    逆にメッセージのない記録が残ると以降の更新が毎回失敗するので、
    記録の作成は必ずメッセージ送信の後に行う。
    """

    def __init__(self, store: RedisStore, channel: BaseChannelClient) -> None:
        self.store = store
        self.channel = channel
        self.logger = make_logger(type(self).__name__)

    def create_monitor(self, world: World, expac: Expac, channel_id: int) -> PublishResult:
        with self.store.transaction() as tx:
            train = tx.find_or_create(world, expac)
            message_id = self.channel.send(
                channel_id, MessageContent(content=f"Initializing {train.name} Train...")
            )
            monitor = tx.insert_monitor(train, channel_id, message_id)

        self.logger.info(f"Created monitor {monitor.id} for {train.name} Train")
        return PublishResult(monitor, self._fill(monitor, render_monitor(train)))

    def create_dashboard(self, channel_id: int) -> PublishResult:
        with self.store.transaction() as tx:
            message_id = self.channel.send(
                channel_id, MessageContent(content="Initializing dashboard...")
            )
            dashboard = tx.insert_dashboard(channel_id, message_id)

        self.logger.info(f"Created dashboard {dashboard.id}")
        try:
            content = render_dashboard(self.store.list_trains())
        except StoreError:
            self.logger.error("Failed to load trains for new dashboard", exc_info=True)
            return PublishResult(dashboard, False)
        return PublishResult(dashboard, self._fill(dashboard, content))

    def _fill(self, projection: Monitor | Dashboard, content: MessageContent) -> bool:
        try:
            self.channel.edit(projection.channel_id, projection.message_id, content)
        except Exception:
            self.logger.error(
                f"Failed to render new {type(projection).__name__.lower()} {projection.id}",
                exc_info=True,
            )
            return False
        return True
