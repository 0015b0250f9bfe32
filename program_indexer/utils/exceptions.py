from enum import Enum


class IndexerError(Exception):
    pass


class ClientInputError(IndexerError):
    """The webhook body is malformed or incomplete. Answered with a 400."""


class AuthError(IndexerError):
    """The shared secret did not match. Answered with a 401."""


class RpcErrorKind(Enum):
    TRANSPORT = "transport"
    EMPTY_RESULT = "empty_result"


class RpcError(IndexerError):
    def __init__(self, kind: RpcErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class DbError(IndexerError):
    """Table creation or upsert failed."""


class InvalidTableIdentity(ValueError):
    pass
