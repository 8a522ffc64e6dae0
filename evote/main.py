import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from evote.application.commands import CreateAdminCommand
from evote.application.handlers import command_bus
from evote.config import BOOTSTRAP_ADMIN_ID, BOOTSTRAP_ADMIN_PASSWORD, LOG_LEVEL
from evote.domain.errors import ConflictError
from evote.infrastructure.admin_repo import AdminRepository
from evote.infrastructure.database import Base, engine
from evote.infrastructure.models import AdminRole
from evote.infrastructure.notification_bus import notification_bus
from evote.infrastructure.notifier import email_notifier
from evote.infrastructure.store import collection_store
from evote.interfaces.admin_controller import router as admin_router
from evote.interfaces.auth_controller import router as auth_router
from evote.interfaces.candidate_controller import router as candidate_router
from evote.interfaces.live_update_controller import router as live_update_router
from evote.interfaces.managers.connection_manager import live_update_manager
from evote.interfaces.signup_controller import router as signup_router
from evote.interfaces.vote_controller import router as vote_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def ensure_bootstrap_admin():
    if AdminRepository(collection_store).get_all_admins():
        return
    command = CreateAdminCommand(admin_id=BOOTSTRAP_ADMIN_ID, password=BOOTSTRAP_ADMIN_PASSWORD, role=AdminRole.ADMIN)
    try:
        command_bus.handle(command)
    except ConflictError:
        return
    logger.warning("Created bootstrap admin %r, change its password", BOOTSTRAP_ADMIN_ID)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_bootstrap_admin()
    live_update_manager.attach(notification_bus, asyncio.get_running_loop())
    yield
    live_update_manager.detach()
    email_notifier.shutdown()


app = FastAPI(title="Online Voting API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(signup_router)
app.include_router(auth_router)
app.include_router(vote_router)
app.include_router(candidate_router)
app.include_router(admin_router)
app.include_router(live_update_router)


# Create tables in the database
Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
