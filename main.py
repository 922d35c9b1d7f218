from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.events import EVENT_JOB_ERROR
from contextlib import asynccontextmanager
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from api import router as api_router
from api.health import router as health_router
from api.services.reminder_service import ReminderService
from api.services.user_service import UserService, UserServiceException
from db.engine import SessionLocal
from db.repositories.user_repository import UserRepository
from db.repositories.settings_repository import SettingsRepository
from sqlalchemy.exc import SQLAlchemyError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
import os
import secrets
from ui import router as ui_router
from ui.utils import render_template


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    filename="log.txt",
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

REMINDER_INTERVAL_MINUTES = 5


def ensure_jwt_secret():
    """Ensure JWT_SECRET exists and is secure"""
    jwt_secret = os.getenv("JWT_SECRET")

    insecure_defaults = [
        "change-me-in-production",
        "change-me-to-random-string",
        "your-secret-key-here",
    ]

    if jwt_secret and jwt_secret not in insecure_defaults:
        return jwt_secret

    db = SessionLocal()
    try:
        settings_repo = SettingsRepository(db)
        # Reuse the secret generated on an earlier start so sessions survive restarts
        stored = settings_repo.get_setting("JWT_SECRET")
        if stored and stored not in insecure_defaults:
            os.environ["JWT_SECRET"] = stored
            return stored

        new_secret = secrets.token_hex(32)
        logger.warning(
            "JWT_SECRET not set or insecure! Generated secure random secret. "
            "Please set JWT_SECRET in your environment for production."
        )
        try:
            settings_repo.set_setting("JWT_SECRET", new_secret, is_secret=True)
            logger.info("Generated JWT_SECRET saved to database")
        except SQLAlchemyError as e:
            logger.error(f"Failed to save JWT_SECRET to database: {e}")
        os.environ["JWT_SECRET"] = new_secret
        return new_secret
    finally:
        db.close()


def initialize_admin_user():
    """Create admin user from environment variables if no users exist"""
    db = SessionLocal()
    try:
        user_repo = UserRepository(db)
        user_service = UserService(user_repo)

        if user_repo.count_users():
            logger.info("Users already exist, skipping admin creation")
            return

        admin_email = os.getenv("ADMIN_EMAIL")
        admin_password = os.getenv("ADMIN_PASSWORD")

        if admin_email and admin_password:
            logger.info(f"Creating admin user from environment variables: {admin_email}")
            user = user_service.signup(admin_email, admin_password, full_name="Administrator")
            user_repo.update_user(user.id, {"is_admin": True})
            logger.info(f"Admin user created successfully: {admin_email}")
        else:
            logger.info("No admin credentials in environment, no admin account created")
    except (UserServiceException, SQLAlchemyError) as e:
        logger.error(f"Error initializing admin user: {e}")
    finally:
        db.close()


scheduler = None


def check_expiring_access(reminder_service: ReminderService):
    def check():
        logger.info("Checking for expiring VIP access...")
        reminder_service.check_expiring_access()

    return check


def init_scheduler(reminder_service: ReminderService):
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        check_expiring_access(reminder_service=reminder_service),
        "interval",
        minutes=REMINDER_INTERVAL_MINUTES,
        id="check_expiring_access_job",
    )
    return scheduler


def job_error_listener(event):
    logger.error(f"Scheduled job {event.job_id} crashed: {event.exception}")


def start_scheduler():
    global scheduler
    logger.info("Starting scheduler...")
    db = SessionLocal()
    reminder_service = ReminderService(UserRepository(db), SettingsRepository(db))
    scheduler = init_scheduler(reminder_service)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
    scheduler.start()


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_jwt_secret()
    initialize_admin_user()
    skip_scheduler = os.getenv("SKIP_SCHEDULER", "false").lower() == "true"
    if not skip_scheduler:
        start_scheduler()
    yield
    if not skip_scheduler and scheduler is not None:
        scheduler.shutdown(wait=True)


app = FastAPI(title="ProSoft Hub", lifespan=lifespan)

# Rate limiting setup
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS Configuration - Allow same-origin by default, customize for production
allowed_origins = os.getenv("CORS_ORIGINS", "*").split(",")
if allowed_origins == ["*"]:
    logger.warning(
        "CORS is set to allow all origins (*). "
        "Set CORS_ORIGINS environment variable to restrict origins in production."
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
    max_age=600,
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


app.include_router(health_router)
app.include_router(api_router, prefix="/api")
app.include_router(ui_router)
app.mount("/static", StaticFiles(directory="static"), name="static")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if request.url.path.startswith("/api/"):
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    context = {"error": exc.detail, "status_code": exc.status_code}
    return render_template(request, "error.html", context, status_code=exc.status_code)
