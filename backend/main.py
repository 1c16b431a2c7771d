from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from routers import reports, insights, api_connections, ingestion, analysis, dashboard, chat_stream
from database import init_db
from config import settings, setup_logging
from middleware import LoggingMiddleware
from exceptions import AppError
from pydantic import ValidationError
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

# Setup logging first
logger, request_id_filter = setup_logging()

logger.info(f"Database target: {settings.DB_NAME or settings.SQLITE_URL} @ {settings.DB_HOST or 'local'}")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.SETTING_VERSION,
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "tryItOutEnabled": True,
        "defaultModelsExpandDepth": -1,
    }
)

# Add logging middleware
app.add_middleware(LoggingMiddleware, request_id_filter=request_id_filter)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
    expose_headers=settings.CORS_EXPOSE_HEADERS,
)

# Include routers
logger.info("Including routers...")

# Report store
app.include_router(reports.router)
app.include_router(insights.router)
app.include_router(api_connections.router)

# Adapters
app.include_router(ingestion.router)
app.include_router(analysis.router)
app.include_router(chat_stream.router)

# Aggregated views
app.include_router(dashboard.router)

logger.info("Routers included")


@app.on_event("startup")
async def startup_event():
    logger.info("Application starting up...")
    init_db()
    logger.info("Database initialized")


@app.get("/")
async def root():
    """Root endpoint - redirects to API health check"""
    return {"message": "regintel API", "health": "/api/health", "docs": "/docs"}

@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {"status": "healthy", "version": settings.SETTING_VERSION}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors become {"success": false, "error": message} with the error's status code."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} in {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__} in {request.url.path}: {exc.message}")
    content = {"success": False, "error": exc.message}
    content.update(getattr(exc, "details", None) or {})
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    logger.error(f"Pydantic ValidationError in {request.url.path}:")
    for error in exc.errors():
        logger.error(f"  - {error['loc']}: {error['msg']} (type: {error['type']})")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(include_url=False, include_context=False)}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors (body parsing, query params, etc.)"""
    logger.error(f"RequestValidationError in {request.url.path}:")
    for error in exc.errors():
        logger.error(f"  - {error.get('loc')}: {error.get('msg')} (type: {error.get('type')})")
    return JSONResponse(
        status_code=422,
        content={"detail": [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for any unhandled exceptions"""
    logger.exception(f"Unhandled exception in {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": f"Internal server error: {type(exc).__name__}"}
    )


logger.info("Application startup complete")
