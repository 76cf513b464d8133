class HuntTrainError(Exception):
    """このパッケージが送出する例外の基底クラス"""


class ValidationError(HuntTrainError):
    """
    コマンド引数の検証エラー。状態を変更する前に送出される。
    メッセージはそのままユーザーに表示する。
    """


class StoreError(HuntTrainError):
    """データストアの読み書きに失敗した"""


class DuplicateTrainError(StoreError):
    """同じ(ワールド, 拡張)のトレインが既に存在する"""
