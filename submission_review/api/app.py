from contextlib import asynccontextmanager

from fastapi import FastAPI

from submission_review.api.routes import admin_router, router
from submission_review.config.settings import Settings, load_settings
from submission_review.executor.review_service import ReviewService
from submission_review.finalization.finalizer import Finalizer, HttpFinalizer, StoreFinalizer
from submission_review.monitor.generation_monitor import GenerationTaskMonitor
from submission_review.registry.step_registry import StepRegistry
from submission_review.storage.json_store import JsonStore
from submission_review.utils.logging import setup_logging


def build_finalizer(settings: Settings, store: JsonStore) -> Finalizer:
    cfg = settings.finalization
    if cfg.mode == "http":
        return HttpFinalizer(cfg.base_url, cfg.token, cfg.timeout_seconds)
    if cfg.mode == "store":
        return StoreFinalizer(store, cfg.reward_pool)
    raise ValueError(f"Unknown finalization mode: {cfg.mode}")


def create_app(
    data_dir: str | None = None,
    policy_file: str | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = JsonStore(data_dir or settings.data_dir)
        pf = policy_file or settings.review.policy_file
        registry = StepRegistry.from_yaml(pf) if pf else StepRegistry()

        app.state.settings = settings
        app.state.store = store
        app.state.reviews = ReviewService(
            store,
            registry,
            build_finalizer(settings, store),
            lease_seconds=settings.review.lease_seconds,
        )
        app.state.monitor = GenerationTaskMonitor(store, settings.harness, settings.monitor)
        yield
        app.state.monitor.stop()

    app = FastAPI(title="Submission Review Service", lifespan=lifespan)
    app.include_router(router)
    app.include_router(admin_router)
    return app
