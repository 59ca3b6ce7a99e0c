from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ParkShareError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ListingValidationError(ParkShareError):
    """A host form is missing a required field."""

    status_code = 400


class SpotNotFoundError(ParkShareError):
    status_code = 404

    def __init__(self, spot_id: str):
        super().__init__(f"Parking spot not found: {spot_id}")
        self.spot_id = spot_id


class AIServiceError(ParkShareError):
    """The text model could not be reached or gave an unusable response.

    Only raised by the transport; the AI client always recovers from it.
    """

    status_code = 502


async def parkshare_exception_handler(request: Request, exc: ParkShareError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
