from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Final

from enums import Expac, Status, World

from .errors import ValidationError

FORCE_WINDOW: Final[timedelta] = timedelta(hours=6)


@dataclass(frozen=True)
class Train:
    """
    トレインの状態。(world, expac)で一意。

    状態遷移メソッドは新しいTrainを返し、自身は変更しない。
    保存はデータストア側で行う。
    """

    world: World
    expac: Expac
    status: Status = Status.UNKNOWN
    scout_map: str | None = None
    last_run: datetime | None = None

    @property
    def key(self) -> tuple[World, Expac]:
        return (self.world, self.expac)

    @property
    def name(self) -> str:
        return f"{self.world.label} {self.expac.label}"

    @property
    def force_time(self) -> datetime | None:
        if self.last_run is None:
            return None
        return self.last_run + FORCE_WINDOW

    def scout(self, scout_map: str | None) -> "Train":
        return replace(self, status=Status.SCOUTED, scout_map=scout_map)

    def start(self, scout_map: str | None = None) -> "Train":
        # 地図が渡されなければ偵察時の地図を引き継ぐ
        return replace(
            self,
            status=Status.RUNNING,
            scout_map=scout_map if scout_map is not None else self.scout_map,
            last_run=None,
        )

    def done(self, at: datetime) -> "Train":
        return replace(self, status=Status.WAITING, scout_map=None, last_run=at)

    def reset(self) -> "Train":
        return replace(self, status=Status.UNKNOWN, scout_map=None, last_run=None)


@dataclass(frozen=True)
class Monitor:
    id: int
    world: World
    expac: Expac
    channel_id: int
    message_id: int

    @property
    def train_key(self) -> tuple[World, Expac]:
        return (self.world, self.expac)


@dataclass(frozen=True)
class Dashboard:
    id: int
    channel_id: int
    message_id: int


def resolve_completion_time(
    completion_time: datetime | None = None,
    force_time: datetime | None = None,
    now: datetime | None = None,
) -> datetime:
    """
    トレインの完了時刻を決める。

    Parameters
    ----------
    completion_time : datetime | None
        完了時刻。指定されればそのまま使う。
    force_time : datetime | None
        次回の強制湧き時刻。完了時刻はこれの6時間前になる。
    now : datetime | None
        どちらも指定されなかった場合の時刻。Noneなら現在時刻。

    Returns
    -------
    datetime
        完了時刻

    Raises
    ------
    ValidationError
        completion_timeとforce_timeが両方指定された場合
    """
    if completion_time is not None and force_time is not None:
        raise ValidationError("Cannot provide both completion_time and force_time")
    if completion_time is not None:
        return completion_time
    if force_time is not None:
        return force_time - FORCE_WINDOW
    return now or datetime.now(timezone.utc)
