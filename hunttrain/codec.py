"""
列挙型と外部表現の相互変換。

保存用(Redis)と選択肢用(スラッシュコマンド)の変換は意図的に分けている。
片方の形式を変えてももう片方に影響しないこと。
"""

from datetime import datetime, timezone
from typing import Final

from enums import Expac, Status, World

# ---- 保存用 ----

_STATUS_CODES: Final[dict[Status, int]] = {
    Status.UNKNOWN: 0,
    Status.WAITING: 1,
    Status.SCOUTED: 2,
    Status.RUNNING: 3,
}
_STATUS_BY_CODE: Final[dict[int, Status]] = {v: k for k, v in _STATUS_CODES.items()}


def world_to_storage(world: World) -> str:
    return world.label


def world_from_storage(value: str) -> World:
    for world in World:
        if world.label == value:
            return world
    raise ValueError(f"invalid World value: {value}")


def expac_to_storage(expac: Expac) -> int:
    return expac.rank


def expac_from_storage(value: int | str) -> Expac:
    rank = int(value)
    for expac in Expac:
        if expac.rank == rank:
            return expac
    raise ValueError(f"invalid Expac value: {value}")


def status_to_storage(status: Status) -> int:
    return _STATUS_CODES[status]


def status_from_storage(value: int | str) -> Status:
    try:
        return _STATUS_BY_CODE[int(value)]
    except (KeyError, ValueError):
        raise ValueError(f"invalid Status value: {value}") from None


def time_to_storage(time: datetime) -> int:
    return int(time.timestamp())


def time_from_storage(value: int | str) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


# ---- 選択肢用 ----


def world_choices() -> list[dict[str, str]]:
    """
    ワールドの選択肢をDiscordのコマンド定義形式で返す。

    Returns
    -------
    list[dict[str, str]]
        nameは表示名、valueはコマンド引数として送られてくる値。
    """
    return [{"name": w.label, "value": w.name.lower()} for w in World]


def expac_choices() -> list[dict[str, str]]:
    return [{"name": e.label, "value": e.short} for e in Expac]


def world_from_choice(value: str) -> World:
    """
    コマンド引数からワールドを得る。大文字小文字は区別しない。
    """
    key = value.strip().lower()
    for world in World:
        if key in (world.name.lower(), world.label.lower()):
            return world
    raise ValueError(f"Unknown world: {value}")


def expac_from_choice(value: str) -> Expac:
    key = value.strip().lower()
    for expac in Expac:
        aliases = {expac.short.lower(), expac.label.lower(), expac.name.lower()}
        if expac is Expac.STB:
            aliases.add("sb")
        if key in aliases:
            return expac
    raise ValueError(f"Unknown expansion: {value}")
