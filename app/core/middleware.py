from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger
import time
import uuid

from app.core.errors import ErrorCode, IngestionError

async def log_request_middleware(request: Request, call_next):
    correlation_id = str(uuid.uuid4())
    # Add correlation id to the loguru context
    with logger.contextualize(correlation_id=correlation_id):
        start_time = time.time()

        # Log request details
        logger.info(f"Incoming request: {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            formatted_process_time = "{0:.2f}".format(process_time)

            logger.info(f"Completed request: {request.method} {request.url.path} - Status: {response.status_code} - Duration: {formatted_process_time}ms")

            # Add correlation ID to response headers
            response.headers["X-Request-ID"] = correlation_id
            return response

        except Exception as e:
            logger.exception(f"Unhandled exception occurred: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "code": ErrorCode.INTERNAL_FAILURE.value,
                    "message": "An internal server error occurred.",
                    "details": {"correlation_id": correlation_id},
                }
            )

def setup_exception_handlers(app):
    @app.exception_handler(IngestionError)
    async def ingestion_exception_handler(request: Request, exc: IngestionError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code.value}: {exc.message}")
        else:
            logger.warning(f"{exc.code.value}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global Exception: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={"code": ErrorCode.INTERNAL_FAILURE.value, "message": "Internal Server Error", "details": {}}
        )
