import os
from dataclasses import dataclass


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Expected a value in the environment variable {name}")
    return value


def _require_int(name: str) -> int:
    value = _require(name)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Expected an integer in the environment variable {name}") from None


@dataclass(frozen=True)
class Settings:
    """
    環境変数から読み込む設定

    Attributes
    ----------
    discord_token : str
        Botトークン
    application_id : int
        DiscordアプリケーションID
    public_key : str
        インタラクション署名検証用の公開鍵(hex)
    train_guild_id : int
        書き込みコマンドを許可するサーバー
    owner_id : int
        管理コマンドを許可するユーザー
    """

    discord_token: str
    application_id: int
    public_key: str
    train_guild_id: int
    owner_id: int
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_ssl: bool = False
    redis_prefix: str = "hunttrain"
    refresh_workers: int = 8
    command_workers: int = 4
    port: int = 8080

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            discord_token=_require("DISCORD_TOKEN"),
            application_id=_require_int("DISCORD_APPLICATION_ID"),
            public_key=_require("DISCORD_PUBLIC_KEY"),
            train_guild_id=_require_int("TRAIN_GUILD_ID"),
            owner_id=_require_int("OWNER_ID"),
            redis_host=os.getenv("REDIS_HOST", "localhost"),
            redis_port=int(os.getenv("REDIS_PORT", "6379")),
            redis_password=os.getenv("REDIS_PASS") or None,
            redis_ssl=os.getenv("REDIS_SSL", "False").lower() == "true",
            redis_prefix=os.getenv("REDIS_PREFIX", "hunttrain"),
            refresh_workers=int(os.getenv("REFRESH_WORKERS", "8")),
            command_workers=int(os.getenv("COMMAND_WORKERS", "4")),
            port=int(os.getenv("PORT", "8080")),
        )
