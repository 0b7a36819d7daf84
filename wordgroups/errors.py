"""
Error taxonomy for the puzzle service.

Every error carries the HTTP status code the API layer answers with, so
services can raise them without knowing about the transport.
"""


class GameError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFoundError(GameError):
    status_code = 404


class InvalidInputError(GameError):
    status_code = 400


class NotApprovedError(InvalidInputError):
    pass


class InvalidGuessSizeError(InvalidInputError):
    pass


class UnknownWordError(InvalidInputError):
    pass


class InvalidPuzzleError(InvalidInputError):
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Puzzle failed validation: {'; '.join(self.errors)}")


class UnauthorizedError(GameError):
    status_code = 401


class ConflictError(GameError):
    status_code = 409


class AlreadyCompletedError(ConflictError):
    pass


class QuotaExceededError(GameError):
    status_code = 429


class InternalError(GameError):
    status_code = 500


class StoreError(InternalError):
    pass


class GenerationError(GameError):
    status_code = 502
