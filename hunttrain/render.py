"""
トレインの状態からメッセージ内容を作る。

ここの関数は入出力を一切行わない。同じ入力には常に同じ内容を返す。
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Final

from clients.baseclient import Embed, EmbedField, LinkButton, MessageContent
from enums import Expac, Status, World

from .model import Train

DASHBOARD_TITLE: Final[str] = "Hunt Trains"


def discord_time(time: datetime, style: str = "f") -> str:
    """
    Discordのタイムスタンプ記法。閲覧者のタイムゾーンで表示される。

    Parameters
    ----------
    time : datetime
        表示する時刻
    style : str, optional
        f: 日時, R: 相対時間
    """
    return f"<t:{int(time.timestamp())}:{style}>"


def render_monitor(train: Train) -> MessageContent:
    lines = [f"{train.status.emoji} {train.status.label}"]
    if train.last_run is not None:
        lines.append(f"Last run completed at: {discord_time(train.last_run)}")
        if train.status is Status.WAITING and train.force_time is not None:
            lines.append(f"Forced {discord_time(train.force_time, 'R')}")

    components: tuple[tuple[LinkButton, ...], ...] = ()
    if train.scout_map:
        components = ((LinkButton(label="Scouted Map", url=train.scout_map),),)

    return MessageContent(
        embeds=(Embed(title=f"{train.name} Train", description="\n".join(lines)),),
        components=components,
    )


def dashboard_worlds() -> list[World]:
    return sorted((w for w in World if w is not World.TESTING), key=lambda w: w.label)


def dashboard_expacs() -> list[Expac]:
    return sorted(Expac, key=lambda e: e.rank, reverse=True)


def dashboard_cell(train: Train | None) -> str:
    if train is None:
        return f"{Status.UNKNOWN.emoji} {Status.UNKNOWN.label}"

    status = train.status
    match status:
        case Status.SCOUTED if train.scout_map:
            label = f"[{status.label}]({train.scout_map})"
        case Status.WAITING if train.force_time is not None:
            label = f"Forced {discord_time(train.force_time, 'R')}"
        case _:
            label = status.label
    return f"{status.emoji} {label}"


def dashboard_column(world: World, by_key: dict[tuple[World, Expac], Train]) -> str:
    return "\n".join(
        f"**{expac.label}** {dashboard_cell(by_key.get((world, expac)))}"
        for expac in dashboard_expacs()
    )


def render_dashboard(trains: Iterable[Train]) -> MessageContent:
    """
    全トレインの一覧を作る。

    ワールドごとに1列、拡張ごとに1行の表にする。
    列はワールドの名前順、行は新しい拡張から。記録のないトレインはUnknownとして表示する。

    Parameters
    ----------
    trains : Iterable[Train]
        表示するトレイン。Testingワールドは無視する。

    Returns
    -------
    MessageContent
        ダッシュボードの内容
    """
    by_key = {t.key: t for t in trains if t.world is not World.TESTING}

    fields = tuple(
        EmbedField(name=world.label, value=dashboard_column(world, by_key), inline=True)
        for world in dashboard_worlds()
    )
    return MessageContent(embeds=(Embed(title=DASHBOARD_TITLE, fields=fields),))
