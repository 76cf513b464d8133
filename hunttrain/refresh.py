from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

from clients.baseclient import BaseChannelClient, MessageContent, StaleMessageError
from utils.make_logger import make_logger

from .database import RedisStore
from .errors import StoreError
from .model import Dashboard, Monitor, Train
from .render import render_dashboard, render_monitor


class Outcome(Enum):
    UPDATED = "updated"
    PRUNED = "pruned"  # メッセージが消えていたので記録を削除した
    FAILED = "failed"


@dataclass(frozen=True)
class Target:
    """
    更新対象のメッセージ1件

    Attributes
    ----------
    projection : Monitor | Dashboard
        対象の記録
    content : MessageContent
        書き込む内容
    prune : Callable[[], None]
        メッセージが消えていた場合に記録を削除する関数
    """

    projection: Monitor | Dashboard
    content: MessageContent
    prune: Callable[[], None]

    @property
    def description(self) -> str:
        return f"{type(self.projection).__name__.lower()} {self.projection.id}"


class Refresher:
    """
    トレインの変更を、そのトレインのモニターと全ダッシュボードに反映する。

    対象ごとに並行して更新し、1件の失敗が他の更新を止めることはない。
    結果は「すべて更新できたか」の真偽値にまとめて返す。
    """

    def __init__(
        self, store: RedisStore, channel: BaseChannelClient, max_workers: int = 8
    ) -> None:
        self.store = store
        self.channel = channel
        self.max_workers = max_workers
        self.logger = make_logger(type(self).__name__)

    def refresh_train(self, train: Train) -> bool:
        """
        トレインのモニターと全ダッシュボードを更新する。コマンドからはこれを使う。

        モニターとダッシュボードは別々に読み込む。片方の読み込みに失敗しても
        もう片方は更新し、結果は失敗として返す。
        """
        targets: list[Target] = []
        loaded = True
        try:
            targets += self.monitor_targets(train)
        except StoreError:
            self.logger.error(f"Failed to load monitors for {train.name}", exc_info=True)
            loaded = False
        try:
            targets += self.dashboard_targets()
        except StoreError:
            self.logger.error("Failed to load dashboards", exc_info=True)
            loaded = False
        return self.run(targets) and loaded

    def refresh_monitors(self, train: Train) -> bool:
        try:
            targets = self.monitor_targets(train)
        except StoreError:
            self.logger.error(f"Failed to load monitors for {train.name}", exc_info=True)
            return False
        return self.run(targets)

    def refresh_dashboards(self) -> bool:
        try:
            targets = self.dashboard_targets()
        except StoreError:
            self.logger.error("Failed to load dashboards", exc_info=True)
            return False
        return self.run(targets)

    def monitor_targets(self, train: Train) -> list[Target]:
        content = render_monitor(train)
        return [
            Target(
                projection=monitor,
                content=content,
                prune=lambda m=monitor: self.store.delete_monitor(m),
            )
            for monitor in self.store.list_monitors(train.world, train.expac)
        ]

    def dashboard_targets(self) -> list[Target]:
        dashboards = self.store.list_dashboards()
        if not dashboards:
            return []
        # ダッシュボードは全トレインから作るので、ストアから読み直す
        content = render_dashboard(self.store.list_trains())
        return [
            Target(
                projection=dashboard,
                content=content,
                prune=lambda d=dashboard: self.store.delete_dashboard(d),
            )
            for dashboard in dashboards
        ]

    def run(self, targets: list[Target]) -> bool:
        if not targets:
            return True

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="refresh"
        ) as executor:
            outcomes = list(executor.map(self.refresh_target, targets))

        failed = outcomes.count(Outcome.FAILED)
        pruned = outcomes.count(Outcome.PRUNED)
        if failed:
            self.logger.warning(
                f"Refreshed {len(targets)} messages: {failed} failed, {pruned} pruned"
            )
        else:
            self.logger.info(f"Refreshed {len(targets)} messages ({pruned} pruned)")
        return failed == 0

    def refresh_target(self, target: Target) -> Outcome:
        projection = target.projection
        try:
            self.channel.fetch(projection.channel_id, projection.message_id)
        except StaleMessageError as e:
            # 削除されたか権限を失ったメッセージ。記録を消せば次回からは対象外になる
            self.logger.info(f"Message for {target.description} is gone ({e}). Pruning")
            try:
                target.prune()
            except Exception:
                self.logger.warning(
                    f"Unable to delete stale {target.description} from our DB",
                    exc_info=True,
                )
            return Outcome.PRUNED
        except Exception:
            self.logger.error(
                f"Failed to fetch message {projection.message_id} for {target.description}",
                exc_info=True,
            )
            return Outcome.FAILED

        try:
            self.channel.edit(projection.channel_id, projection.message_id, target.content)
        except Exception:
            self.logger.error(
                f"Failed to update message {projection.message_id} for {target.description}",
                exc_info=True,
            )
            return Outcome.FAILED

        return Outcome.UPDATED
