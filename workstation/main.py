from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api import workstation
from .core.config import settings
from .core.database import AsyncSessionLocal, create_tables
from .services.subscription_service import SubscriptionService
from .services.telegram_bot import telegram_bot
import asyncio
import logging

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Workstation Subscriptions API",
    description="Workstation plans, subscriptions, payments and access cards",
    version="1.0.0"
)


async def scheduler_worker():
    """Flip due pending/active subscriptions and overdue installments"""
    while True:
        try:
            async with AsyncSessionLocal() as session:
                await SubscriptionService(session).process_due_transitions()
        except Exception:
            # Log and keep going; the next tick retries
            logger.exception("Error in scheduler_worker")
        await asyncio.sleep(settings.scheduler_interval_seconds)


@app.on_event("startup")
async def startup_event():
    await create_tables()
    if settings.scheduler_enabled:
        app.state.scheduler_task = asyncio.create_task(scheduler_worker())


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "scheduler_task", None)
    if task is not None:
        task.cancel()
    await telegram_bot.close()


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict to the frontend origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workstation, prefix="/api")


@app.get("/health")
async def health_check():
    """Liveness probe"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
