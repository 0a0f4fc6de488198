"""
Lily Chat Bridge - FastAPI application for chatting with local and cloud LLMs.
Featuring streamed turns with a bounded tool-call loop and long-term memory retrieval.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from config import Config
from dependencies import get_services, reset_services
from routes import chat, chat_stream, memories, models_route, sessions, usage
from utils.errors import StorageError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    await get_services().refresh_models()
    yield
    await HTTPClientManager.close_all()
    reset_services()

app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def describe_validation_error(error: dict) -> str:
    """One readable line for a request validation error."""
    location = error.get("loc") or ()
    field = location[-1] if location else "request"
    error_type = error.get("type", "")

    if error_type == "string_too_long":
        limit = (error.get("ctx") or {}).get("max_length", "unknown")
        return f"Field '{field}' exceeds maximum length of {limit} characters (current: {len(error.get('input', ''))})"
    if error_type == "missing":
        return f"Field '{field}' is required"
    if error_type == "json_invalid":
        return "Request body is not valid JSON"
    return f"{field}: {error.get('msg', 'Validation error')}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report every validation error of a request with a readable message."""
    errors = exc.errors()
    app_logger.error(f"Validation error for {request.url}: {errors}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": [
                {"msg": describe_validation_error(error), "type": error.get("type", ""), "loc": list(error.get("loc", ()))}
                for error in errors
            ]
        },
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    """Local store failures outside a turn"""
    app_logger.error(f"Storage error for {request.url}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "type": "storage_error"},
    )


#root endpoint
@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"message": "Lily Chat Bridge is running"}

app.include_router(models_route.router, tags=["models"])
app.include_router(chat.router, tags=["chat"])
app.include_router(chat_stream.router, tags=["chat"])
app.include_router(sessions.router, tags=["sessions"])
app.include_router(memories.router, tags=["memories"])
app.include_router(usage.router, tags=["usage"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
