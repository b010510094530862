"""
Procurement Workflow Hub - Main Server

Wires the workflow engine to MongoDB, mounts the routers under /api and runs
the auto-cancellation and reminder sweeps as background tasks.
"""

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from pathlib import Path
import asyncio
import logging
import os

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ==================== ROUTERS ====================
from routes import auth, documents, workflows

# ==================== SERVICES ====================
from services.audit_log import MongoAuditLog
from services.auto_cancellation import AutoCancellationSweep
from services.dispatcher import PostTransitionDispatcher
from services.document_store import MongoDocumentStore
from services.notification_service import NotificationService
from services.reminders import MongoScheduleStore, ReminderSweep
from services.vendor_directory import MongoVendorDirectory
from services.workflow_config import WorkflowConfig
from services.workflow_engine import WorkflowEngine

# ==================== DATABASE ====================
MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "procurement_hub")

mongo_client = None
_sweep_tasks = []


def build_services(db, config: WorkflowConfig) -> dict:
    """Assemble the engine and its collaborators around one database."""
    store = MongoDocumentStore(db)
    audit = MongoAuditLog(db)
    vendors = MongoVendorDirectory(db)
    schedule = MongoScheduleStore(db)
    notifications = NotificationService(db=db)

    dispatcher = PostTransitionDispatcher(store, notifications, vendors, schedule, config)
    engine = WorkflowEngine(store, audit, vendors, dispatcher, config=config)

    return {
        "store": store,
        "audit_log": audit,
        "vendors": vendors,
        "schedule": schedule,
        "engine": engine,
        "auto_cancellation": AutoCancellationSweep(engine, schedule, notifications, config),
        "reminders": ReminderSweep(store, schedule, notifications, config),
    }


async def _sweep_scheduler(name: str, sweep, interval_minutes: int):
    """
    Background task that runs a sweep every interval_minutes.

    Errors are logged and the loop keeps going; cancellation stops it.
    """
    while True:
        try:
            logger.info("%s sweep triggered", name)
            await sweep.run()
            await asyncio.sleep(interval_minutes * 60)
        except asyncio.CancelledError:
            logger.info("%s scheduler cancelled", name)
            break
        except Exception as e:
            logger.error(f"Error in {name} scheduler: {e}")
            await asyncio.sleep(interval_minutes * 60)


# ==================== LIFESPAN ====================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global mongo_client

    logger.info("Starting Procurement Workflow Hub...")
    config = WorkflowConfig.from_env()

    mongo_client = AsyncIOMotorClient(MONGO_URL)
    db = mongo_client[DB_NAME]
    services = build_services(db, config)

    documents.set_store(services["store"])
    workflows.set_dependencies(
        services["engine"],
        services["audit_log"],
        auto_cancel=services["auto_cancellation"],
        reminders=services["reminders"],
    )

    await create_indexes(db, services)

    if config.sweeps_enabled:
        _sweep_tasks.append(asyncio.create_task(
            _sweep_scheduler("Auto-cancellation", services["auto_cancellation"], config.sweep_interval_minutes)
        ))
        _sweep_tasks.append(asyncio.create_task(
            _sweep_scheduler("Reminder", services["reminders"], config.sweep_interval_minutes)
        ))
        logger.info("Workflow sweeps started (interval: %d min)", config.sweep_interval_minutes)

    logger.info(
        "Procurement Workflow Hub started (lock scope: %s, timeout: %ss)",
        config.lock_scope, config.lock_timeout_seconds
    )

    yield

    logger.info("Shutting down Procurement Workflow Hub...")
    for task in _sweep_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    _sweep_tasks.clear()
    if mongo_client:
        mongo_client.close()


async def create_indexes(db, services: dict):
    """Create database indexes."""
    await services["store"].create_indexes()
    await services["audit_log"].create_indexes()
    await services["vendors"].create_indexes()
    await services["schedule"].create_indexes()
    await db.email_logs.create_index("message_id")
    await db.email_logs.create_index("sent_at")
    logger.info("Database indexes created")


# ==================== APP ====================
app = FastAPI(
    title="Procurement Workflow Hub",
    description="Status workflow for purchase requisitions and purchase orders",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(documents.router)
api_router.include_router(workflows.router)
app.include_router(api_router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "procurement-workflow-hub"}
