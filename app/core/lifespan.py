import contextlib
from contextlib import asynccontextmanager
import asyncio
import logging

from app.services.pipeline_controller import build_pipeline_services
from app.services.pipeline_state_store import PipelineStateStore, build_key_value_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    backend = build_key_value_store()
    store = PipelineStateStore(backend)
    app.state.pipeline_services = build_pipeline_services(store)

    expired = store.purge_expired_sessions()
    if expired:
        logger.info("pipeline_retention_purge deleted=%s", len(expired))

    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                deleted = store.purge_expired_sessions()
                if deleted:
                    logger.info("pipeline_retention_purge deleted=%s", len(deleted))
            except Exception as exc:  # noqa: BLE001
                logger.warning("pipeline_retention_purge_failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=3600)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
    close = getattr(backend, "close", None)
    if close is not None:
        close()
