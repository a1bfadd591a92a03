"""Exception taxonomy for the chat bridge.

Every error that can reach an HTTP caller derives from ChatBridgeError and
carries the status code the API maps it to. EnrichmentError is always
recovered by the enrichment pipeline, and PersistenceError is only logged when
it comes from post-stream persistence.
"""


class ChatBridgeError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(ChatBridgeError):
    status_code = 401


class ForbiddenError(ChatBridgeError):
    status_code = 403


class RateLimitedError(ChatBridgeError):
    status_code = 429

    def __init__(self, message: str, retry_after: float):
        super().__init__(message)
        self.retry_after = max(retry_after, 1.0)


class InvalidInputError(ChatBridgeError):
    status_code = 400


class InputTooLargeError(InvalidInputError):
    pass


class SessionNotFoundError(ChatBridgeError):
    status_code = 404


class SessionConflictError(ChatBridgeError):
    status_code = 409


class EmbeddingError(ChatBridgeError):
    status_code = 500


class EnrichmentError(ChatBridgeError):
    pass


class UpstreamStreamError(ChatBridgeError):
    status_code = 500


class PersistenceError(ChatBridgeError):
    pass


class RequestCancelledError(ChatBridgeError):
    status_code = 499
