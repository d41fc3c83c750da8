"""
FastAPI main application for the Fingerprint Gateway
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from fpgateway.app.config import get_settings, setup_logging
from fpgateway.app.errors import CONFIG_INVALID, INVALID_INPUT, FingerprintError
from fpgateway.app.routes.fingerprint import router as fingerprint_router

settings = get_settings()
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Fingerprint Gateway"
VERSION = "0.1.0"

app = FastAPI(
    title=SERVICE_NAME,
    description="Canonical hashing and confidence scoring for browser signal documents",
    version=VERSION
)

app.include_router(fingerprint_router)


@app.exception_handler(FingerprintError)
async def fingerprint_error_handler(request: Request, exc: FingerprintError):
    """Render structured errors; configuration faults are server errors."""
    if exc.code == INVALID_INPUT:
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if exc.code == CONFIG_INVALID:
        logger.error("Configuration error on %s: %s", request.url.path, exc.message)

    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": SERVICE_NAME,
        "status": "operational",
        "version": VERSION,
        "environment": settings.environment
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
