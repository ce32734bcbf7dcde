"""
Daily Bounty Agent — FastAPI application (port 3001)

Issues one photo bounty per day on the POIDH contract, watches for claims
against its own bounties, scores each claim's image with Claude, and
accepts qualifying claims on-chain.

Interfaces: HTTP API + scheduled jobs (claim poll, daily bounty)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from shared.config import settings
from shared.database import async_session, engine
from shared.ledger import get_ledger
from shared.utils.logging import setup_logging
from shared.utils.scheduler import start_scheduler, stop_scheduler, scheduler
from agents.bounty.config import DAILY_BOUNTY_HOUR, POLL_INTERVAL
from agents.bounty.errors import BountyIdUnresolvedError
from agents.bounty.routes.api import router
from agents.bounty.services.issuer import create_bounty
from agents.bounty.services.reconciler import poll_claims, start_polling
from agents.bounty.services.session import AgentSession, get_session, set_session
from agents.bounty.services.store import BountyStore, init_store
import structlog

logger = structlog.get_logger()


async def _poll_job():
    try:
        result = await poll_claims(get_session())
        if result.owned:
            logger.info("poll_tick_done", blocks=f"{result.from_block}-{result.to_block}",
                        owned=result.owned, outcomes=result.outcomes, failed=result.failed)
    except Exception as e:
        logger.error("poll_job_failed", error=str(e))


async def _daily_bounty_job():
    logger.info("daily_bounty_starting")
    try:
        bounty_id = await create_bounty(get_session())
        logger.info("daily_bounty_created", bounty_id=bounty_id)
    except BountyIdUnresolvedError as e:
        logger.error("daily_bounty_unresolved", tx_hash=e.tx_hash, local_id=e.local_id)
    except Exception as e:
        logger.error("daily_bounty_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("bounty_agent_starting", environment=settings.ENVIRONMENT)

    await init_store(engine)
    session = AgentSession(ledger=get_ledger(), store=BountyStore(async_session))
    set_session(session)
    if not session.address:
        logger.warning("private_key_missing", detail="claims cannot be settled and bounties cannot be created")

    await start_polling(session)

    scheduler.add_job(_poll_job, "interval", seconds=POLL_INTERVAL, id="claim_poll")
    scheduler.add_job(_daily_bounty_job, "cron", hour=DAILY_BOUNTY_HOUR, minute=0, id="daily_bounty")
    start_scheduler()

    yield

    stop_scheduler()
    set_session(None)
    await engine.dispose()
    logger.info("bounty_agent_stopped")


app = FastAPI(
    title="Daily Bounty Agent",
    description="Issues a daily photo bounty on-chain, judges claims with Claude, and settles winners.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agents.bounty.main:app", host="0.0.0.0", port=settings.PORT)
