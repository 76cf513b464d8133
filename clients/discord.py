import time
from typing import Any

import requests

from utils.make_logger import make_logger

from .baseclient import (
    BaseChannelClient,
    ChannelError,
    Embed,
    ForbiddenError,
    LinkButton,
    Message,
    MessageContent,
    NotFoundError,
)

_ACTION_ROW = 1
_BUTTON = 2
_LINK_STYLE = 5


class DiscordClient(BaseChannelClient):
    HOST = "https://discord.com/api/v10"

    def __init__(
        self,
        token: str,
        session: requests.Session | None = None,
        timeout: int = 10,
        retry_sleep: float = 1.0,
        retry_times: int = 3,
    ) -> None:
        """
        Discord REST APIのクライアント

        Parameters
        ----------
        token : str
            Botトークン
        session : requests.Session | None, optional
            使用するセッション。Noneなら新しく作る
        timeout : int, optional
            リクエストのタイムアウト時間（秒）
        retry_sleep : float, optional
            リトライ時の待機時間（秒）
        retry_times : int, optional
            最大試行回数
        """
        self.logger = make_logger(type(self).__name__)
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bot {token}",
                "User-Agent": "DiscordBot (hunttrain-bot, 0.1.0)",
            }
        )
        self.timeout = timeout
        self.retry_sleep = retry_sleep
        self.retry_times = retry_times

    def send(self, channel_id: int, content: MessageContent) -> int:
        data = self._request(
            "POST", f"/channels/{channel_id}/messages", json=to_payload(content)
        )
        return int(data["id"])

    def edit(self, channel_id: int, message_id: int, content: MessageContent) -> None:
        self._request(
            "PATCH",
            f"/channels/{channel_id}/messages/{message_id}",
            json=to_payload(content),
        )

    def fetch(self, channel_id: int, message_id: int) -> Message:
        data = self._request("GET", f"/channels/{channel_id}/messages/{message_id}")
        return Message(
            id=int(data["id"]),
            channel_id=int(data.get("channel_id", channel_id)),
            content=data.get("content", ""),
        )

    def delete(self, channel_id: int, message_id: int) -> None:
        self._request("DELETE", f"/channels/{channel_id}/messages/{message_id}")

    def edit_original_response(
        self, application_id: int, interaction_token: str, text: str
    ) -> None:
        """
        遅延応答したインタラクションの応答を書き換える
        """
        self._request(
            "PATCH",
            f"/webhooks/{application_id}/{interaction_token}/messages/@original",
            json={"content": text},
        )

    def register_guild_commands(
        self, application_id: int, guild_id: int, commands: list[dict[str, Any]]
    ) -> None:
        self._request(
            "PUT",
            f"/applications/{application_id}/guilds/{guild_id}/commands",
            json=commands,
        )
        self.logger.info(f"Set application commands for guild {guild_id}")

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        """
        リクエストを送信する。429と5xxはリトライする。

        Returns
        -------
        Any
            レスポンスのJSON。本文がなければNone

        Raises
        ------
        NotFoundError
            404
        ForbiddenError
            403
        ChannelError
            その他の失敗、またはリトライ回数を超えた場合
        """
        for i in range(self.retry_times):
            delay = self.retry_sleep
            try:
                r = self.session.request(
                    method, self.HOST + path, json=json, timeout=self.timeout
                )
                r.raise_for_status()
                if r.status_code == 204 or not r.content:
                    return None
                return r.json()
            except requests.Timeout as e:
                self.logger.warning(f"Request timed out: {e}")
            except requests.HTTPError as e:
                status = e.response.status_code
                match status:
                    case 404:
                        raise NotFoundError(f"{method} {path}: not found", status) from e
                    case 403:
                        raise ForbiddenError(f"{method} {path}: forbidden", status) from e
                    case 429:
                        retry_after = e.response.headers.get("Retry-After")
                        try:
                            delay = float(retry_after) if retry_after else 2**i
                        except ValueError:
                            delay = 2**i
                        self.logger.warning(f"Rate limited. Retrying after {delay}s...")
                    case _ if status >= 500:
                        self.logger.warning(
                            f"Server error ({status}). retrying... ({i + 1}/{self.retry_times})"
                        )
                    case _:
                        raise ChannelError(f"{method} {path}: {e}", status) from e
            except requests.RequestException as e:
                raise ChannelError(f"{method} {path}: {e}") from e

            if i < self.retry_times - 1:
                time.sleep(delay)

        raise ChannelError(f"{method} {path}: failed after {self.retry_times} attempts")


def to_payload(content: MessageContent) -> dict[str, Any]:
    # 空文字を送ると初期化メッセージの本文が消える
    return {
        "content": content.content,
        "embeds": [_embed_payload(e) for e in content.embeds],
        "components": [
            {"type": _ACTION_ROW, "components": [_button_payload(b) for b in row]}
            for row in content.components
        ],
    }


def _embed_payload(embed: Embed) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if embed.title is not None:
        payload["title"] = embed.title
    if embed.description is not None:
        payload["description"] = embed.description
    if embed.fields:
        payload["fields"] = [
            {"name": f.name, "value": f.value, "inline": f.inline} for f in embed.fields
        ]
    return payload


def _button_payload(button: LinkButton) -> dict[str, Any]:
    return {
        "type": _BUTTON,
        "style": _LINK_STYLE,
        "label": button.label,
        "url": button.url,
    }
