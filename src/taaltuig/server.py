import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from taaltuig.application.config import AppConfig, resolve_config
from taaltuig.application.factory import create_store
from taaltuig.application.review_service import ReviewService
from taaltuig.application.session import should_hold
from taaltuig.consts import VERSION
from taaltuig.domain.errors import ConfigurationError, ItemNotFoundError
from taaltuig.domain.models import Grade, ReviewItem

logger = logging.getLogger("taaltuig.server")


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Build the API application. The store handle is opened in the lifespan and
    closed on shutdown; it lives on ``app.state``, never at module level.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or resolve_config()
        file_handler = _attach_file_log(cfg.log_dir)
        store = create_store(cfg).open()
        app.state.config = cfg
        app.state.store = store
        app.state.service = ReviewService(store=store, settings=store, history=store)
        logger.info(f"Taaltuig Server v{VERSION} starting up...")
        try:
            yield
        finally:
            store.close()
            logger.info("Taaltuig Server shutting down...")
            logging.getLogger("taaltuig").removeHandler(file_handler)
            file_handler.close()

    app = FastAPI(
        title="Taaltuig Server",
        description="Spaced-repetition scheduling API.",
        version=VERSION,
        lifespan=lifespan,
    )
    _register_routes(app)
    return app


def _attach_file_log(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / "server.log", maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))
    logging.getLogger("taaltuig").addHandler(handler)
    return handler


def get_service(request: Request) -> ReviewService:
    return request.app.state.service


def get_user_id(request: Request, x_user_id: str | None = Header(default=None)) -> str:
    # Authentication is out of scope; the caller names the user
    return x_user_id or request.app.state.config.user_id


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class SubmitReviewRequest(BaseModel):
    review_item_id: str
    grade: int
    duration_ms: int = Field(default=0, ge=0)


class CreateCardRequest(BaseModel):
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)
    explanation: str | None = None
    category: str | None = None


def _item_response(item: ReviewItem) -> dict[str, Any]:
    return {"id": item.review_item_id, **item.to_dict()}


start_time = time.time()


def _register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """
        Simple health check to verify server is reachable.
        """
        return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)

    @app.get("/version")
    async def get_version():
        return {"version": VERSION}

    @app.get("/reviews/queue")
    async def get_review_queue(
        extra_new: int = 0,
        all: bool = False,
        service: ReviewService = Depends(get_service),
        user_id: str = Depends(get_user_id),
    ):
        """Today's queue (due + learning + new up to the daily limit), or every item."""
        if extra_new < 0:
            raise HTTPException(status_code=400, detail="extra_new must be >= 0")
        try:
            if all:
                result = await service.list_all(user_id)
            else:
                result = await service.build_queue(user_id, extra_new=extra_new)
        except Exception as e:
            logger.error(f"Queue build failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e)) from e

        return {
            "queue": [_item_response(item) for item in result.items],
            "stats": result.stats.to_dict(),
        }

    @app.post("/reviews/submit")
    async def submit_review(
        req: SubmitReviewRequest,
        request: Request,
        service: ReviewService = Depends(get_service),
        user_id: str = Depends(get_user_id),
    ):
        """Grade an item and return its next schedule."""
        try:
            grade = Grade.parse(req.grade)
        except ValueError as e:
            raise HTTPException(
                status_code=400, detail="Invalid grade. Must be 0, 2, 3, or 4"
            ) from e

        try:
            outcome = await service.submit_review(
                user_id, req.review_item_id, grade, duration_ms=req.duration_ms
            )
        except ItemNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except ConfigurationError as e:
            logger.error(f"Submit failed: {e}")
            raise HTTPException(status_code=500, detail=str(e)) from e

        result = outcome.result
        horizon = timedelta(hours=request.app.state.config.hold_horizon_hours)
        return {
            "next_review": result.to_dict()["due_at"],
            "interval_days": result.interval,
            "state": result.state.value,
            "result": result.to_dict(),
            "hold_in_session": should_hold(result.due_at, outcome.graded_at, horizon),
        }

    @app.get("/settings")
    async def get_settings(
        service: ReviewService = Depends(get_service),
        user_id: str = Depends(get_user_id),
    ):
        settings = await service.get_settings(user_id)
        return {"settings": {"user_id": user_id, **settings.model_dump()}}

    @app.put("/settings")
    async def update_settings(
        changes: dict[str, Any],
        service: ReviewService = Depends(get_service),
        user_id: str = Depends(get_user_id),
    ):
        """Partial update of the scheduling settings."""
        try:
            settings = await service.update_settings(user_id, changes)
        except ValidationError as e:
            raise HTTPException(
                status_code=400, detail=e.errors(include_url=False, include_context=False)
            ) from e
        return {"settings": {"user_id": user_id, **settings.model_dump()}}

    @app.post("/cards", status_code=201)
    async def create_card(
        req: CreateCardRequest,
        service: ReviewService = Depends(get_service),
        user_id: str = Depends(get_user_id),
    ):
        """Create a card's forward and reverse review items."""
        forward, reverse = await service.add_card(
            user_id, req.front, req.back, explanation=req.explanation, category=req.category
        )
        return {
            "card_id": forward.card_id,
            "review_items": [_item_response(forward), _item_response(reverse)],
        }

    @app.post("/debug/reset-daily-reviews")
    async def reset_daily_reviews(
        service: ReviewService = Depends(get_service),
        user_id: str = Depends(get_user_id),
    ):
        """Reset today's reviews (for testing purposes)."""
        deleted = await service.reset_daily_reviews(user_id)
        return {"message": "Daily reviews reset successfully", "deleted_count": deleted}


# Setup logging
logging.basicConfig(level=logging.INFO)

app = create_app()
