"""FastAPI app for the transcription relay and chat demo backend."""

import logging
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from ..context import AppContext
from ..errors import InvalidInput
from ..relay.service import parse_samples
from .replies import reply_to

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error body for 4xx/5xx responses."""
    error: str


class ChatRequest(BaseModel):
    """Chat message from the demo UI."""
    message: Optional[str] = None


class ChatResponse(BaseModel):
    """Bot reply."""
    response: str


class HealthResponse(BaseModel):
    """Liveness probe response."""
    status: str
    relay_ready: bool


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def _write_lines(
    first: Optional[str],
    fragments: AsyncGenerator[str, None],
) -> AsyncIterator[str]:
    """Write each fragment followed by a newline as soon as it arrives."""
    try:
        if first is None:
            return
        yield first + "\n"
        async for text in fragments:
            yield text + "\n"
    except Exception as e:
        # Headers are already sent; ending the body is all that is left.
        logger.error(f"Transcription stream failed mid-response: {e}", exc_info=True)
    finally:
        await fragments.aclose()


def create_app(context: AppContext) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="voicechat relay",
        description="Microphone transcription relay for the chat demo",
        version="0.1.0",
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.config.relay.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
        return _error(400, "Invalid request body")

    # ==================== API Routes ====================

    @app.get("/api/health", response_model=HealthResponse)
    async def health(request: Request):
        """Liveness probe."""
        ctx: AppContext = request.app.state.context
        return HealthResponse(status="ok", relay_ready=ctx.started)

    @app.post(
        "/api/transcribe",
        response_class=StreamingResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def transcribe(request: Request):
        """Relay one batch of samples and stream transcripts back as text lines."""
        logger.info("Received transcription request")
        ctx: AppContext = request.app.state.context
        if not ctx.started:
            return _error(503, "Relay not initialized")

        try:
            payload = await request.json()
        except ValueError:
            payload = None

        try:
            samples = parse_samples(payload)
        except InvalidInput as e:
            logger.error(f"Invalid audio data received: {e}")
            return _error(400, "Invalid audio data")

        try:
            stream = await ctx.relay.open(samples)
        except Exception as e:
            logger.error(f"Server error: {e}", exc_info=True)
            return _error(500, "Internal server error")

        # The status is only committed once the first fragment (or the end
        # of an empty transcript) arrives, so early failures still get a 500.
        fragments = stream.fragments()
        try:
            first = await fragments.__anext__()
        except StopAsyncIteration:
            first = None
        except Exception as e:
            logger.error(f"Transcription failed before first fragment: {e}", exc_info=True)
            await fragments.aclose()
            return _error(500, "Internal server error")

        logger.info("Recognizer session open, streaming transcripts")
        return StreamingResponse(_write_lines(first, fragments), media_type="text/plain")

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def chat(body: ChatRequest):
        """Answer a chat message with a canned reply."""
        logger.info(f"Received chat message: {body.message!r}")
        message = (body.message or "").strip()
        if not message:
            return _error(400, "Message cannot be empty")

        try:
            return ChatResponse(response=reply_to(message))
        except Exception as e:
            logger.error(f"Error processing chat message: {e}")
            return _error(500, "Failed to process chat message")

    return app
