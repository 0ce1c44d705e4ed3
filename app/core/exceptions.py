from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Rejected input: missing identifiers, illegal transitions, bad quantities."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(HTTPException):
    """The requested record does not exist or has been soft deleted."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class NotarizationError(Exception):
    """
    Raised by the notarization sink. Never leaves the background worker.
    """
    pass
