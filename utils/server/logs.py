import base64
import hmac
import os

from bottle import Bottle, request, response, static_file

from ..make_logger import LOG_FILE_PATH

logs_app = Bottle()

LOGS_USER = "admin"


def auth(header: str) -> bool:
    password = os.getenv("LOG_PASSWORD") or None

    # パスワード未設定時は認証不要
    if not password:
        return True

    try:
        auth_type, encoded = header.split(" ", 1)
        if auth_type.lower() != "basic":
            return False

        username, given = base64.b64decode(encoded).decode("utf-8").split(":", 1)
    except ValueError:
        return False
    return username == LOGS_USER and hmac.compare_digest(given, password)


@logs_app.route("/", method=["GET"])
def get_logs():
    if not auth(request.headers.get("Authorization", "")):
        response.status = 401
        response.headers["WWW-Authenticate"] = 'Basic realm="Logs Access", charset="UTF-8"'
        return "Authentication required."

    if not os.path.exists(LOG_FILE_PATH):
        response.status = 404
        return "Log file not found."
    return static_file(
        os.path.basename(LOG_FILE_PATH),
        root=os.path.dirname(LOG_FILE_PATH),
        download=True,
    )
