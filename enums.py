from enum import Enum


class World(Enum):
    """
    ワールド(トレインの開催場所)

    Properties
    ----------
    label : str
        表示名
    """

    HALICARNASSUS = ("Halicarnassus",)
    MADUIN = ("Maduin",)
    MARILITH = ("Marilith",)
    SERAPH = ("Seraph",)
    TESTING = ("Testing",)  # ダッシュボードには表示しない

    @property
    def label(self) -> str:
        return self.value[0]


class Expac(Enum):
    """
    拡張パッケージ(トレインの種類)

    Properties
    ----------
    label : str
        表示名
    short : str
        略称
    rank : int
        並び順。大きいほど新しい
    """

    ARR = ("A Realm Reborn", "ARR", 2)
    HW = ("Heavensward", "HW", 3)
    STB = ("Stormblood", "StB", 4)
    SHB = ("Shadowbringers", "ShB", 5)
    EW = ("Endwalker", "EW", 6)

    def __init__(self, label: str, short: str, rank: int):
        self._label = label
        self._short = short
        self._rank = rank

    @property
    def label(self) -> str:
        return self._label

    @property
    def short(self) -> str:
        return self._short

    @property
    def rank(self) -> int:
        return self._rank


class Status(Enum):
    """
    トレインの状態

    Properties
    ----------
    label : str
        表示名
    emoji : str
        状態を表す絵文字
    """

    UNKNOWN = ("Unknown", "❓")
    WAITING = ("Waiting", "🕑")
    SCOUTED = ("Scouted", "☑️")
    RUNNING = ("Running", "➡️")

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def emoji(self) -> str:
        return self.value[1]
