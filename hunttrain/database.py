from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

from redis import Redis, RedisError, WatchError
from redis.client import Pipeline

from config import Settings
from enums import Expac, World
from utils.make_logger import make_logger

from .codec import (
    expac_from_storage,
    expac_to_storage,
    status_from_storage,
    status_to_storage,
    time_from_storage,
    time_to_storage,
    world_from_storage,
    world_to_storage,
)
from .errors import DuplicateTrainError, StoreError
from .model import Dashboard, Monitor, Train

logger = make_logger(__name__)

_OPTIONAL_TRAIN_FIELDS = ("scout_map", "last_run")


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        raise StoreError(f"Failed to {action}: {e}") from e
    except (KeyError, ValueError) as e:
        raise StoreError(f"Corrupt record while trying to {action}: {e}") from e


class Transaction:
    """
    MULTI/EXECでまとめて書き込むトランザクション。

    書き込みはcommit()まで送信されない。読み込みはストアから直接行うため、
    同じトランザクション内の未コミットの書き込みは見えない。
    with文で使うと、例外なく抜けた場合にcommitし、例外時は破棄する。
    """

    def __init__(self, store: "RedisStore") -> None:
        self.store = store
        self.pipe: Pipeline = store.redis.pipeline(transaction=True)
        self.committed = False

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None and not self.committed:
            self.commit()
        else:
            self.pipe.reset()

    def commit(self) -> None:
        try:
            with _store_errors("commit transaction"):
                self.pipe.execute()
            self.committed = True
        finally:
            self.pipe.reset()

    def find_or_create(self, world: World, expac: Expac) -> Train:
        """
        トレインを取得する。存在しなければUnknown状態で作成をキューに積む。
        """
        train = self.store.find_train(world, expac)
        if train is not None:
            return train
        return self.insert_train(Train(world=world, expac=expac))

    def insert_train(self, train: Train) -> Train:
        # HSETNXなので並行して作られても既存の値を上書きしない
        key = self.store.train_key(train.world, train.expac)
        for name, value in _train_mapping(train).items():
            self.pipe.hsetnx(key, name, value)
        self.pipe.sadd(self.store.key("trains"), _member(train))
        return train

    def update_train(self, train: Train) -> Train:
        key = self.store.train_key(train.world, train.expac)
        mapping = _train_mapping(train)
        self.pipe.hset(key, mapping=mapping)
        missing = [f for f in _OPTIONAL_TRAIN_FIELDS if f not in mapping]
        if missing:
            self.pipe.hdel(key, *missing)
        self.pipe.sadd(self.store.key("trains"), _member(train))
        return train

    def insert_monitor(self, train: Train, channel_id: int, message_id: int) -> Monitor:
        monitor = Monitor(
            id=self.store.next_id("monitor"),
            world=train.world,
            expac=train.expac,
            channel_id=channel_id,
            message_id=message_id,
        )
        self.pipe.hset(
            self.store.key("monitor", monitor.id),
            mapping={
                "id": monitor.id,
                "world": world_to_storage(monitor.world),
                "expac": expac_to_storage(monitor.expac),
                "channel_id": monitor.channel_id,
                "message_id": monitor.message_id,
            },
        )
        self.pipe.sadd(self.store.monitors_key(train.world, train.expac), monitor.id)
        return monitor

    def insert_dashboard(self, channel_id: int, message_id: int) -> Dashboard:
        dashboard = Dashboard(
            id=self.store.next_id("dashboard"),
            channel_id=channel_id,
            message_id=message_id,
        )
        self.pipe.hset(
            self.store.key("dashboard", dashboard.id),
            mapping={
                "id": dashboard.id,
                "channel_id": dashboard.channel_id,
                "message_id": dashboard.message_id,
            },
        )
        self.pipe.sadd(self.store.key("dashboards"), dashboard.id)
        return dashboard


class RedisStore:
    """
    Train / Monitor / Dashboard をRedisに保存するデータストア。

    トレインのキーは(world, expac)から作るため、同じトレインが二つ存在することはない。
    """

    def __init__(self, redis: Redis, prefix: str = "hunttrain") -> None:
        self.redis = redis
        self.prefix = prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisStore":
        redis = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            ssl=settings.redis_ssl,
            decode_responses=True,
        )
        return cls(redis, prefix=settings.redis_prefix)

    def key(self, *parts: object) -> str:
        return ":".join([self.prefix, *(str(p) for p in parts)])

    def train_key(self, world: World, expac: Expac) -> str:
        return self.key("train", world_to_storage(world), expac_to_storage(expac))

    def monitors_key(self, world: World, expac: Expac) -> str:
        return self.train_key(world, expac) + ":monitors"

    def next_id(self, kind: str) -> int:
        with _store_errors(f"allocate {kind} id"):
            return int(self.redis.incr(self.key(kind, "next_id")))

    def transaction(self) -> Transaction:
        return Transaction(self)

    # ---- Train ----

    def find_train(self, world: World, expac: Expac) -> Train | None:
        with _store_errors("find train"):
            data = self.redis.hgetall(self.train_key(world, expac))
            return _train_from_hash(data) if data else None

    def insert_train(self, train: Train) -> Train:
        """
        トレインを新規作成する。

        Raises
        ------
        DuplicateTrainError
            同じ(world, expac)のトレインが既に存在する場合
        """
        key = self.train_key(train.world, train.expac)
        with _store_errors("insert train"):
            with self.redis.pipeline(transaction=True) as pipe:
                try:
                    pipe.watch(key)
                    if pipe.exists(key):
                        raise DuplicateTrainError(f"{train.name} train already exists")
                    pipe.multi()
                    pipe.hset(key, mapping=_train_mapping(train))
                    pipe.sadd(self.key("trains"), _member(train))
                    pipe.execute()
                except WatchError:
                    raise DuplicateTrainError(
                        f"{train.name} train was created concurrently"
                    ) from None
        return train

    def update_train(self, train: Train) -> Train:
        with self.transaction() as tx:
            tx.update_train(train)
        return train

    def find_or_create(self, world: World, expac: Expac) -> Train:
        with self.transaction() as tx:
            return tx.find_or_create(world, expac)

    def list_trains(self, exclude: World | None = World.TESTING) -> list[Train]:
        with _store_errors("list trains"):
            members = sorted(self.redis.smembers(self.key("trains")))
            pipe = self.redis.pipeline(transaction=False)
            for member in members:
                pipe.hgetall(self.key("train", member))
            trains = [_train_from_hash(data) for data in pipe.execute() if data]
        return [t for t in trains if t.world is not exclude]

    # ---- Monitor ----

    def list_monitors(self, world: World, expac: Expac) -> list[Monitor]:
        with _store_errors("list monitors"):
            ids = sorted(int(i) for i in self.redis.smembers(self.monitors_key(world, expac)))
            pipe = self.redis.pipeline(transaction=False)
            for monitor_id in ids:
                pipe.hgetall(self.key("monitor", monitor_id))
            return [_monitor_from_hash(data) for data in pipe.execute() if data]

    def delete_monitor(self, monitor: Monitor) -> None:
        with _store_errors("delete monitor"):
            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(self.key("monitor", monitor.id))
            pipe.srem(self.monitors_key(monitor.world, monitor.expac), monitor.id)
            pipe.execute()
        logger.info(f"Deleted monitor {monitor.id} (message {monitor.message_id})")

    # ---- Dashboard ----

    def list_dashboards(self) -> list[Dashboard]:
        with _store_errors("list dashboards"):
            ids = sorted(int(i) for i in self.redis.smembers(self.key("dashboards")))
            pipe = self.redis.pipeline(transaction=False)
            for dashboard_id in ids:
                pipe.hgetall(self.key("dashboard", dashboard_id))
            return [_dashboard_from_hash(data) for data in pipe.execute() if data]

    def delete_dashboard(self, dashboard: Dashboard) -> None:
        with _store_errors("delete dashboard"):
            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(self.key("dashboard", dashboard.id))
            pipe.srem(self.key("dashboards"), dashboard.id)
            pipe.execute()
        logger.info(f"Deleted dashboard {dashboard.id} (message {dashboard.message_id})")


def _member(train: Train) -> str:
    return f"{world_to_storage(train.world)}:{expac_to_storage(train.expac)}"


def _train_mapping(train: Train) -> dict[str, str | int]:
    mapping: dict[str, str | int] = {
        "world": world_to_storage(train.world),
        "expac": expac_to_storage(train.expac),
        "status": status_to_storage(train.status),
    }
    if train.scout_map is not None:
        mapping["scout_map"] = train.scout_map
    if train.last_run is not None:
        mapping["last_run"] = time_to_storage(train.last_run)
    return mapping


def _train_from_hash(data: dict[str, str]) -> Train:
    return Train(
        world=world_from_storage(data["world"]),
        expac=expac_from_storage(data["expac"]),
        status=status_from_storage(data["status"]),
        scout_map=data.get("scout_map"),
        last_run=time_from_storage(data["last_run"]) if "last_run" in data else None,
    )


def _monitor_from_hash(data: dict[str, str]) -> Monitor:
    return Monitor(
        id=int(data["id"]),
        world=world_from_storage(data["world"]),
        expac=expac_from_storage(data["expac"]),
        channel_id=int(data["channel_id"]),
        message_id=int(data["message_id"]),
    )


def _dashboard_from_hash(data: dict[str, str]) -> Dashboard:
    return Dashboard(
        id=int(data["id"]),
        channel_id=int(data["channel_id"]),
        message_id=int(data["message_id"]),
    )
