"""
Vocab Lab - FastAPI application for vocabulary frequency analysis

HTTP surface of the vocabulary engine:
- Corpus ingestion (inline articles or ids resolved from VOCAB_ARTICLES_DIR)
- Fuzzy and exact vocabulary search with highlighted contexts
- Per-article difficulty personalized for the learner
- Reading sessions, lookups and learning progress

Environment:
    VOCAB_ARTICLES_DIR   directory of <id>.html|.txt articles (optional)
    VOCAB_CACHE_DIR      directory for the corpus snapshot (in-memory if unset)
    VOCAB_STATE_DIR      directory for the learner profile (in-memory if unset)
    VOCAB_*              engine options, see EngineConfig.from_env()
    LOG_LEVEL            console log level (default INFO)
    PORT                 server port (default 8080)
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

# Load environment variables from .env.local (local dev) or .env
from dotenv import load_dotenv

env_local = Path(__file__).parent.parent / ".env.local"
env_file = Path(__file__).parent.parent / ".env"

if env_local.exists():
    print(f"Loading environment from: {env_local}")
    load_dotenv(env_local, override=True)
elif env_file.exists():
    print(f"Loading environment from: {env_file}")
    load_dotenv(env_file, override=True)

# Configure logging: console (brief) + file (detailed)
from vocab_lab.logging_config import setup_logging

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
setup_logging(
    log_file=os.getenv("VOCAB_LOG_FILE", "logs/vocab-lab.log"),
    console_level=getattr(logging, log_level, logging.INFO),
    file_level=logging.DEBUG,
)

logger = logging.getLogger(__name__)


from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import EngineConfig
from .engine import VocabularyEngine
from .stores import (
    DirectoryContentSource,
    FileCacheStore,
    FileStateStore,
    InMemoryCacheStore,
    InMemoryStateStore,
)

PORT = int(os.getenv("PORT", "8080"))

APP_VERSION = "0.1.0"
APP_START_TIME = datetime.utcnow().isoformat() + "Z"

# Global engine instance (created in lifespan)
engine: Optional[VocabularyEngine] = None


def build_engine() -> VocabularyEngine:
    """Create the engine and its collaborators from the environment."""
    articles_dir = os.getenv("VOCAB_ARTICLES_DIR")
    cache_dir = os.getenv("VOCAB_CACHE_DIR")
    state_dir = os.getenv("VOCAB_STATE_DIR")

    return VocabularyEngine(
        EngineConfig.from_env(),
        content_source=DirectoryContentSource(articles_dir) if articles_dir else None,
        state_store=FileStateStore(state_dir) if state_dir else InMemoryStateStore(),
        cache_store=FileCacheStore(cache_dir) if cache_dir else InMemoryCacheStore(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the vocabulary engine"""
    global engine

    engine = build_engine()
    restored = await engine.start()
    logger.info(f"Vocabulary engine ready (restored from cache: {restored})")

    yield

    logger.info("Shutting down...")
    engine.close()
    engine = None


app = FastAPI(
    title="Vocab Lab API",
    description="Vocabulary frequency analysis with personalized difficulty",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engine() -> VocabularyEngine:
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vocabulary engine not initialized",
        )
    return engine


# Request/Response models
class HealthResponse(BaseModel):
    status: str
    version: str
    started_at: str
    articles_analyzed: int
    total_words: int
    session_active: bool


class ArticleIn(BaseModel):
    id: str = Field(..., min_length=1)
    title: Optional[str] = None
    content: Optional[str] = Field(None, description="Article text; fetched from the article directory if omitted")


class AnalyzeRequest(BaseModel):
    articles: List[Union[ArticleIn, str]] = Field(..., min_length=1)
    wait: bool = Field(True, description="Wait for the analysis to finish before responding")


class AnalyzeResponse(BaseModel):
    status: str
    total: int
    processed: int = 0
    failed: int = 0
    total_words: int = 0


class SearchResponse(BaseModel):
    query: str
    count: int
    results: List[Dict[str, Any]]


class LookupRequest(BaseModel):
    word: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


class ReadRequest(BaseModel):
    text: str


class PreferenceUpdate(BaseModel):
    key: str = Field(..., description="reading_speed | comprehension_level | preferred_difficulty")
    value: Any


class MarkWordRequest(BaseModel):
    word: str = Field(..., min_length=1)
    status: str = Field(..., pattern="^(strength|weak)$")


# Routes
@app.get("/health", response_model=HealthResponse)
async def health(engine: VocabularyEngine = Depends(get_engine)):
    """Health check"""
    state = engine.get_analysis_state()
    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        started_at=APP_START_TIME,
        articles_analyzed=state["articles_analyzed"],
        total_words=state["total_words"],
        session_active=state["session_active"],
    )


@app.post("/articles/analyze", response_model=AnalyzeResponse)
async def analyze_articles(request: AnalyzeRequest, engine: VocabularyEngine = Depends(get_engine)):
    """
    Analyze articles into the corpus

    Example:
        POST /articles/analyze
        {
            "articles": [{"id": "a1", "title": "Tea", "content": "I enjoy tea."}, "a2"]
        }
    """
    articles = [a.model_dump(exclude_none=True) if isinstance(a, ArticleIn) else a for a in request.articles]
    task = engine.analyze_articles(articles)
    if task is False:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Analysis could not be started (another analysis may be running)",
        )

    if not request.wait:
        return AnalyzeResponse(status="started", total=task.total)

    summary = await task
    return AnalyzeResponse(
        status="completed" if not summary["failed"] else "partial",
        total=summary["total"],
        processed=summary["processed"],
        failed=summary["failed"],
        total_words=summary["total_words"],
    )


@app.get("/words/search", response_model=SearchResponse)
async def search_words(
    q: str = Query(..., description="Search text"),
    limit: int = Query(20, ge=1, le=200),
    engine: VocabularyEngine = Depends(get_engine),
):
    """Fuzzy search over stems and their variants"""
    results = engine.search_words(q, limit=limit)
    return SearchResponse(query=q, count=len(results), results=results)


@app.get("/words/search/exact", response_model=SearchResponse)
async def search_words_exact(
    q: str = Query(..., description="Exact surface form"),
    engine: VocabularyEngine = Depends(get_engine),
):
    """Exact word search with highlighted contexts"""
    results = engine.search_words_exact(q)
    return SearchResponse(query=q, count=len(results), results=results)


@app.get("/words/top", response_model=List[Dict[str, Any]])
async def top_words(
    limit: int = Query(100, ge=1, le=1000),
    smart: bool = Query(False, description="Order by distribution score instead of raw count"),
    engine: VocabularyEngine = Depends(get_engine),
):
    """Most frequent words"""
    return engine.get_top_words(limit, smart=smart)


@app.get("/words/{word}", response_model=Dict[str, Any])
async def word_details(word: str, engine: VocabularyEngine = Depends(get_engine)):
    """Statistics for one word (stem or any surface form)"""
    details = engine.get_word_details(word)
    if details is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Word not found: {word}",
        )
    return details


@app.get("/words/{word}/recommendations", response_model=Dict[str, Any])
async def word_recommendations(word: str, engine: VocabularyEngine = Depends(get_engine)):
    """Personalized learning advice for one word"""
    recommendations = engine.get_personalized_recommendations(word)
    if recommendations is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Word not found: {word}",
        )
    return recommendations


@app.get("/articles/{article_id}/difficulty", response_model=Dict[str, Any])
async def article_difficulty(article_id: str, engine: VocabularyEngine = Depends(get_engine)):
    """Article difficulty adjusted to the learner (neutral for unknown articles)"""
    return engine.calculate_personalized_difficulty(article_id)


@app.post("/sessions/start", response_model=Dict[str, Any])
async def start_session(engine: VocabularyEngine = Depends(get_engine)):
    started = engine.start_learning_session()
    if not started:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session could not be started",
        )
    return {"started": True, "start_time": engine.current_session.start_time}


@app.post("/sessions/end", response_model=Dict[str, Any])
async def end_session(engine: VocabularyEngine = Depends(get_engine)):
    analysis = engine.end_learning_session()
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No active session",
        )
    return analysis


@app.post("/sessions/lookup", response_model=Dict[str, Any])
async def record_lookup(request: LookupRequest, engine: VocabularyEngine = Depends(get_engine)):
    analysis = engine.record_word_lookup(request.word, request.context)
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Lookup could not be recorded",
        )
    return analysis


@app.post("/sessions/read", response_model=Dict[str, Any])
async def record_reading(request: ReadRequest, engine: VocabularyEngine = Depends(get_engine)):
    if engine.current_session is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No active session",
        )
    return {"words_counted": engine.record_reading(request.text)}


@app.get("/progress", response_model=Dict[str, Any])
async def learning_progress(engine: VocabularyEngine = Depends(get_engine)):
    progress = engine.get_learning_progress()
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Progress could not be calculated",
        )
    return progress


@app.get("/profile", response_model=Dict[str, Any])
async def get_profile(engine: VocabularyEngine = Depends(get_engine)):
    return engine.get_user_profile()


@app.patch("/profile", response_model=Dict[str, Any])
async def update_profile(request: PreferenceUpdate, engine: VocabularyEngine = Depends(get_engine)):
    if not engine.update_user_preference(request.key, request.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid preference: {request.key}={request.value!r}",
        )
    return engine.get_user_profile()


@app.post("/profile/words", response_model=Dict[str, Any])
async def mark_word(request: MarkWordRequest, engine: VocabularyEngine = Depends(get_engine)):
    """Mark a word as a strength or a weak spot"""
    if not engine.mark_word(request.word, request.status):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Word could not be marked: {request.word}",
        )
    return engine.get_user_profile()


@app.get("/stats", response_model=Dict[str, Any])
async def stats(engine: VocabularyEngine = Depends(get_engine)):
    summary = engine.get_stats_summary()
    summary["analysis"] = engine.get_analysis_state()
    return summary


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler"""
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vocab_lab.main:app",
        host="0.0.0.0",
        port=PORT,
    )
