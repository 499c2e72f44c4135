import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from app.config import APP_NAME, APP_HOST, APP_PORT, CORS_ORIGINS, DEBUG
from app.errors import ServiceError
from app.tasks import start_scheduler, stop_scheduler

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Import routers
from app.routers import health, checkin, pt


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {APP_NAME}...")
    start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    logger.info(f"Shutting down {APP_NAME}...")


app = FastAPI(
    title=APP_NAME,
    description="Attendance check-in API for gym kiosks and dashboards",
    version="1.0.0",
    debug=DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


VALIDATION_MESSAGES = {
    "String should have at least 1 character": "Must not be empty",
    "Field required": "Required",
    "Input should be a valid integer": "Must be a number",
    "Input should be a valid integer, unable to parse string as an integer": "Must be a number",
    "Input should be a valid number": "Must be a number",
    "Input should be a valid date": "Must be a date (YYYY-MM-DD)",
}


def _translate_validation(error):
    msg = error["msg"]
    translated = VALIDATION_MESSAGES.get(msg)
    if translated:
        return translated
    # Handle pattern: "Input should be greater than N"
    if "should be greater than" in msg:
        return f"Must be greater than {msg.split('greater than ')[1]}"
    if "should be less than" in msg:
        return f"Must be less than {msg.split('less than ')[1]}"
    return msg


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    errors = exc.errors()
    parts = []
    for e in errors:
        field = e["loc"][-1] if e.get("loc") else ""
        translated = _translate_validation(e)
        parts.append(f"{field}: {translated}" if field and field != "__root__" else translated)
    message = "; ".join(parts)
    return JSONResponse(
        status_code=422,
        content={"detail": {"error_code": "VALIDATION_ERROR", "message": message}},
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request, exc: ServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
    )


@app.get("/")
def root():
    return {
        "message": f"Welcome to {APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
    }


# Include routers
app.include_router(health.router)
app.include_router(checkin.router)
app.include_router(pt.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=APP_HOST, port=APP_PORT, reload=DEBUG)
