import json
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from bottle import request, response
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from clients.baseclient import ChannelError
from clients.discord import DiscordClient
from hunttrain.codec import expac_choices, world_choices
from utils.make_logger import make_logger

from .commands import TrainCommands

PING = 1
APPLICATION_COMMAND = 2

PONG = 1
DEFERRED_CHANNEL_MESSAGE = 5
EPHEMERAL = 1 << 6

_SUB_COMMAND = 1
_STRING = 3


def _option(name: str, description: str, required: bool = True, **extra: Any) -> dict:
    return {
        "type": _STRING,
        "name": name,
        "description": description,
        "required": required,
        **extra,
    }


def _train_options() -> list[dict]:
    return [
        _option("world", "World server", choices=world_choices()),
        _option("expac", "Expansion", choices=expac_choices()),
    ]


def command_definitions() -> list[dict]:
    """
    ホームサーバーに登録するスラッシュコマンドの定義
    """
    map_link = "Link to a map or a message with flag locations"
    return [
        {
            "name": "train",
            "description": "Hunt train commands",
            "options": [
                {
                    "type": _SUB_COMMAND,
                    "name": "scout",
                    "description": "Mark a train as scouted",
                    "options": _train_options()
                    + [
                        _option(
                            "map_link",
                            f"{map_link} (leave blank to clear existing map)",
                            required=False,
                        )
                    ],
                },
                {
                    "type": _SUB_COMMAND,
                    "name": "start",
                    "description": "Mark a train as being run",
                    "options": _train_options()
                    + [_option("map_link", map_link, required=False)],
                },
                {
                    "type": _SUB_COMMAND,
                    "name": "done",
                    "description": "Mark a train as being complete",
                    "options": _train_options()
                    + [
                        _option(
                            "completion_time",
                            "Discord timestamp when it was finished, defaults to now",
                            required=False,
                        ),
                        _option(
                            "force_time",
                            "Discord timestamp when it will be forced, "
                            "mutually exclusive with `completion_time`",
                            required=False,
                        ),
                    ],
                },
                {
                    "type": _SUB_COMMAND,
                    "name": "reset",
                    "description": "Reset a train to unknown",
                    "options": _train_options(),
                },
                {
                    "type": _SUB_COMMAND,
                    "name": "create_monitor",
                    "description": "Add a new hunt train monitor post",
                    "options": _train_options(),
                },
                {
                    "type": _SUB_COMMAND,
                    "name": "create_dashboard",
                    "description": "Add a new hunt train monitor dashboard",
                },
            ],
        },
        {
            "name": "delete_message",
            "description": "Delete a message posted by the bot (owner only)",
            "default_member_permissions": "0",
            "options": [
                _option("channel_id", "Channel ID"),
                _option("message_id", "Message ID"),
            ],
        },
    ]


def verify_signature(public_key: str, signature: str, timestamp: str, body: bytes) -> bool:
    try:
        VerifyKey(bytes.fromhex(public_key)).verify(
            timestamp.encode() + body, bytes.fromhex(signature)
        )
    except (BadSignatureError, ValueError):
        return False
    return True


def extract_command(data: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """
    インタラクションのdataからコマンド名と引数を取り出す。
    /train はサブコマンドの名前と引数を返す。
    """
    options = data.get("options", [])
    if data.get("name") == "train":
        if len(options) != 1 or options[0].get("type") != _SUB_COMMAND:
            return "", {}
        sub = options[0]
        return sub["name"], {o["name"]: o["value"] for o in sub.get("options", [])}
    return data.get("name", ""), {o["name"]: o["value"] for o in options}


def _int_or_none(value: Any) -> int | None:
    return int(value) if value is not None else None


class InteractionHandler:
    def __init__(
        self,
        commands: TrainCommands,
        client: DiscordClient,
        application_id: int,
        public_key: str,
        max_workers: int = 4,
    ) -> None:
        self.commands = commands
        self.client = client
        self.application_id = application_id
        self.public_key = public_key
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="command"
        )
        self.logger = make_logger(type(self).__name__)

    def handle(
        self, body: bytes, signature: str, timestamp: str
    ) -> tuple[int, dict[str, Any]]:
        """
        インタラクションを処理する。

        コマンドは3秒以内に応答できないことがあるため、先に遅延応答を返し、
        スレッドプールで実行した結果を後から書き込む。

        Returns
        -------
        tuple[int, dict[str, Any]]
            HTTPステータスとレスポンス本文
        """
        if not verify_signature(self.public_key, signature, timestamp, body):
            return 401, {"error": "invalid request signature"}

        try:
            payload = json.loads(body)
        except ValueError:
            return 400, {"error": "invalid body"}

        kind = payload.get("type")
        if kind == PING:
            return 200, {"type": PONG}
        if kind == APPLICATION_COMMAND:
            self.executor.submit(self.run, payload).add_done_callback(self._report)
            return 200, {"type": DEFERRED_CHANNEL_MESSAGE, "data": {"flags": EPHEMERAL}}

        self.logger.warning(f"Unsupported interaction type: {kind}")
        return 400, {"error": "unsupported interaction type"}

    def run(self, payload: dict[str, Any]) -> str:
        name, options = extract_command(payload.get("data", {}))
        user = payload.get("member", {}).get("user") or payload.get("user") or {}
        self.logger.info(f"Command {name} from user {user.get('id')}")

        reply = self.commands.execute(
            name,
            options,
            guild_id=_int_or_none(payload.get("guild_id")),
            channel_id=_int_or_none(
                payload.get("channel_id") or payload.get("channel", {}).get("id")
            ),
            user_id=_int_or_none(user.get("id")),
        )
        try:
            self.client.edit_original_response(
                self.application_id, payload["token"], reply
            )
        except ChannelError:
            self.logger.error(f"Failed to reply to {name}", exc_info=True)
        return reply

    def _report(self, future: Future) -> None:
        # runの中で捕まえきれなかった例外
        error = future.exception()
        if error is not None:
            self.logger.error("Command worker failed", exc_info=error)

    def endpoint(self) -> dict[str, Any]:
        status, body = self.handle(
            request.body.read(),
            request.headers.get("X-Signature-Ed25519", ""),
            request.headers.get("X-Signature-Timestamp", ""),
        )
        response.status = status
        return body
