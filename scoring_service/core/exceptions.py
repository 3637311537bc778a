"""
Error taxonomy shared by repositories, services and controllers.

Pure scoring code never raises for bad data (it reports in-band through
``details["error"]``); everything that touches storage raises one of these.
"""

from typing import Optional

from fastapi import HTTPException, status


class ScoringServiceError(Exception):
    """Base exception for the scoring service."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ScoringServiceError):
    """Malformed prediction/result/rules payload or out-of-range argument."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ScoringServiceError):
    """Missing score, leaderboard entry or streak."""
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyExistsError(ScoringServiceError):
    """Duplicate prediction_id on score insert."""
    status_code = status.HTTP_409_CONFLICT


class ConflictError(ScoringServiceError):
    """A rank pass is already running for the contest."""
    status_code = status.HTTP_409_CONFLICT


class UnavailableError(ScoringServiceError):
    """Transient storage failure or deadline exceeded."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class PartialSuccessError(ScoringServiceError):
    """The score was persisted but the leaderboard update failed."""

    def __init__(self, message: str, score_id: Optional[int] = None):
        super().__init__(message)
        self.score_id = score_id


class FatalError(ScoringServiceError):
    """Invariant violation; the operation is aborted before any write."""


def to_http_exception(error: ScoringServiceError) -> HTTPException:
    """Map a service error onto the HTTP boundary."""
    if isinstance(error, PartialSuccessError):
        return HTTPException(
            status_code=error.status_code,
            detail={
                "message": error.message,
                "score_id": error.score_id,
                "retry": "leaderboard update",
            },
        )
    return HTTPException(status_code=error.status_code, detail=error.message)
