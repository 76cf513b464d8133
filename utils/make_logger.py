import os
from logging import DEBUG, INFO, FileHandler, Formatter, Logger, getLogger

from rich.logging import RichHandler

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
LOG_DIR = os.getenv("LOG_DIR") or os.path.join(PROJECT_ROOT, "logs")
LOG_FILE_PATH = os.path.join(LOG_DIR, "output.log")


def clear_log_file() -> None:
    if os.path.exists(LOG_FILE_PATH):
        os.remove(LOG_FILE_PATH)


def _log_level() -> int:
    return DEBUG if os.getenv("DEBUG", "False").lower() == "true" else INFO


def make_logger(name: str, context: str | None = None) -> Logger:
    """
    コンソール(rich)とファイルに出力するロガーを作る。
    同じ名前で二度呼んでもハンドラは重複しない。

    Parameters
    ----------
    name : str
        ロガー名
    context : str | None, optional
        名前の後ろに [context] として付ける識別子
    """
    if context:
        name = rf"{name}\[{context}]"

    logger = getLogger(name)
    logger.setLevel(_log_level())

    if not logger.handlers:
        os.makedirs(os.path.dirname(LOG_FILE_PATH), exist_ok=True)
        rich_handler = RichHandler(
            rich_tracebacks=True,
            markup=True,
            show_path=False,
        )
        rich_handler.setFormatter(Formatter("[magenta]%(name)s[/magenta] %(message)s"))
        logger.addHandler(rich_handler)

        file_handler = FileHandler(LOG_FILE_PATH, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            Formatter("%(asctime)s %(levelname)s %(name)s [%(threadName)s] - %(message)s")
        )
        logger.addHandler(file_handler)

    return logger
