from bottle import Bottle

from app.interactions import InteractionHandler

from .logs import logs_app


def create_app(handler: InteractionHandler) -> Bottle:
    app = Bottle()
    app.mount("/logs", logs_app)

    @app.route("/")
    def root():
        return "I'm alive!"

    app.route("/interactions", method="POST", callback=handler.endpoint)
    return app


def server_run(app: Bottle, port: int = 8080) -> None:
    """
    HTTPサーバーを起動する。戻らない。

    Parameters
    ----------
    app : Bottle
        起動するアプリ
    port : int, optional
        待ち受けポート
    """
    app.run(host="0.0.0.0", port=port, quiet=True)
