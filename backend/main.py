"""Main entry point for the Easy-T support assistant API."""
import logging
import uuid
from typing import Any, Dict, Optional
from fastapi import Body, FastAPI, Query, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    PORT,
    LOG_LEVEL,
    LOG_FORMAT,
    CORS_ORIGINS,
    INTENT_CLASSIFIER,
    SESSION_BACKEND,
    RECENT_ACTIVITY_LIMIT,
    REPLY_MISSING_MESSAGE,
    REPLY_SERVER_ERROR,
    REPLY_TEMPORARY_ERROR,
)
from logger import setup_logging
from models.api import ChatRequest, ChatResponse, ClickEvent
from services.llm_client import LLMClient, LLMClientError
from services.embedding_model import EmbeddingModel, EmbeddingError
from services.course_search import CourseSearch, CourseSearchError
from services.retrieval_engine import RetrievalEngine
from services.intent_classifier import build_classifier
from services.responder import Responder
from services.session_store import InMemorySessionStore, SupabaseSessionStore, SessionStoreError
from services.chat_pipeline import ChatPipeline
from services.activity_feed import ActivityFeed
from services.interaction_logger import InteractionLogger

# Initialize logging
logger = logging.getLogger(__name__)

UPSTREAM_ERRORS = (LLMClientError, EmbeddingError, CourseSearchError, SessionStoreError)

# Initialize FastAPI app
app = FastAPI(
    title="Easy-T Support Assistant",
    description="Course-advisor chat assistant for the Easy-T learning platform",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
chat_pipeline: ChatPipeline = None
activity_feed: ActivityFeed = None
interaction_logger: InteractionLogger = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup; missing credentials abort the process."""
    global chat_pipeline, activity_feed, interaction_logger

    setup_logging(LOG_LEVEL, LOG_FORMAT)
    logger.info("Initializing Easy-T assistant services...")

    try:
        llm_client = LLMClient()
        embedding_model = EmbeddingModel()
        course_search = CourseSearch()
        retrieval_engine = RetrievalEngine(course_search, embedding_model)
        logger.info("Initialized RetrievalEngine")

        classifier = build_classifier(INTENT_CLASSIFIER, llm_client)
        logger.info(f"Initialized {type(classifier).__name__}")

        if SESSION_BACKEND == "supabase":
            session_store = SupabaseSessionStore()
        else:
            session_store = InMemorySessionStore()
        logger.info(f"Initialized {type(session_store).__name__}")

        interaction_logger = InteractionLogger()

        chat_pipeline = ChatPipeline(
            session_store=session_store,
            classifier=classifier,
            retrieval_engine=retrieval_engine,
            responder=Responder(llm_client),
            interaction_logger=interaction_logger
        )

        activity_feed = ActivityFeed()
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    if interaction_logger is not None:
        interaction_logger.close()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Easy-T AI Assistant"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "easyt-assistant",
        "version": "1.0.0"
    }


@app.get("/test")
async def test():
    return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed /chat bodies get the same localized 400 as a missing message."""
    if request.url.path == "/chat":
        logger.warning(f"Rejected malformed chat request: {exc.errors()}")
        return JSONResponse(status_code=400, content={"reply": REPLY_MISSING_MESSAGE})
    return await request_validation_exception_handler(request, exc)


@app.post("/chat", response_model=ChatResponse)
def chat_endpoint(request: Optional[ChatRequest] = Body(None)):
    """
    Main chat endpoint.

    Body: ``{message, session_id?, user_id?}``. An empty body, a missing or
    blank message and a non-text message all answer 400. A missing session id
    gets a fresh one. Upstream failures answer 200 with a temporary-error reply
    so the widget keeps working; anything else answers 500.
    """
    message = request.message if request is not None else None
    if not isinstance(message, str) or not message.strip():
        return JSONResponse(status_code=400, content={"reply": REPLY_MISSING_MESSAGE})
    message = message.strip()

    session_id = request.session_id or str(uuid.uuid4())

    try:
        logger.info(f"Processing chat message: session={session_id}, message={message[:100]}")
        result = chat_pipeline.handle(message, session_id, request.user_id)
        return ChatResponse(reply=result.reply, session_id=result.session_id)

    except UPSTREAM_ERRORS as e:
        logger.error(f"Upstream failure for session {session_id}: {e}", exc_info=True)
        return ChatResponse(reply=REPLY_TEMPORARY_ERROR, session_id=session_id)

    except Exception as e:
        logger.error(f"Unexpected error processing chat: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"reply": REPLY_SERVER_ERROR})


@app.post("/teachable-webhook")
async def teachable_webhook(request: Request):
    """Ingest a Teachable webhook; answers 200 for stored, duplicate and ignored events."""
    try:
        payload: Dict[str, Any] = await request.json()
        if not isinstance(payload, dict):
            return {"status": "ignored"}
        status = activity_feed.record_webhook(payload)
        return {"status": status}
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "webhook processing failed"})


@app.get("/recent-activity")
def recent_activity(
    limit: int = Query(RECENT_ACTIVITY_LIMIT, ge=1, le=50),
    minutes: Optional[int] = Query(None, ge=1)
):
    try:
        return {"activity": activity_feed.recent(limit=limit, minutes=minutes)}
    except Exception as e:
        logger.error(f"Failed to load recent activity: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "failed to load activity"})


@app.post("/track-click")
def track_click(event: ClickEvent):
    if interaction_logger is not None:
        interaction_logger.log_click(url=event.url, title=event.title, session_id=event.session_id)
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Easy-T AI Assistant on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
