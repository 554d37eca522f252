"""Todoストアのカスタム例外定義"""


class TodoStoreError(Exception):
    """Todoストア基底例外"""

    pass


class StorageError(TodoStoreError):
    """永続化データの読み書きエラー"""

    pass


class DuplicateIdentityError(TodoStoreError):
    """既に存在するidentityを挿入しようとした"""

    pass
