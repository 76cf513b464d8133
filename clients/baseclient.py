from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class Embed:
    title: str | None = None
    description: str | None = None
    fields: tuple[EmbedField, ...] = ()


@dataclass(frozen=True)
class LinkButton:
    label: str
    url: str


@dataclass(frozen=True)
class MessageContent:
    """
    メッセージの内容。送信・編集のどちらにも使う。
    components は行ごとのリンクボタン。
    """

    content: str = ""
    embeds: tuple[Embed, ...] = ()
    components: tuple[tuple[LinkButton, ...], ...] = field(default=())


@dataclass(frozen=True)
class Message:
    id: int
    channel_id: int
    content: str = ""


class ChannelError(Exception):
    """
    メッセージ操作の失敗

    Attributes
    ----------
    status : int | None
        HTTPステータスコード。通信自体が失敗した場合はNone
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class StaleMessageError(ChannelError):
    """メッセージが既に存在しない、またはアクセスできない"""


class NotFoundError(StaleMessageError):
    pass


class ForbiddenError(StaleMessageError):
    pass


class BaseChannelClient(ABC):
    @abstractmethod
    def send(self, channel_id: int, content: MessageContent) -> int:
        """
        新しいメッセージを送信する

        Parameters
        ----------
        channel_id : int
            送信先チャンネル
        content : MessageContent
            送信内容

        Returns
        -------
        int
            送信したメッセージのID
        """
        pass

    @abstractmethod
    def edit(self, channel_id: int, message_id: int, content: MessageContent) -> None:
        """
        既存のメッセージを書き換える。失敗時はChannelErrorを送出する
        """
        pass

    @abstractmethod
    def fetch(self, channel_id: int, message_id: int) -> Message:
        """
        メッセージを取得する

        Raises
        ------
        NotFoundError
            メッセージが削除されている
        ForbiddenError
            メッセージにアクセスできない
        ChannelError
            その他の失敗
        """
        pass
