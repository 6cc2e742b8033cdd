from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from antraege.routers import attachments, forms
from antraege.database import engine, Base
from antraege.errors import AppError, ErrorType, ValidationError
from antraege.models import antrag
import structlog

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title="Antrag API",
    description="Backend API for Anträge and their file attachments",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Validation failed", path=request.url.path, field_errors=exc.field_errors)
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validierungsfehler",
            "type": ErrorType.VALIDATION.value,
            "fieldErrors": exc.field_errors
        }
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.error(
        "Application error",
        path=request.url.path,
        error_type=exc.error_type.value,
        error=exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


# Include routers
app.include_router(attachments.router)
app.include_router(forms.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Antrag API is running"}


@app.get("/health")
async def health_check():
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "service": "antrag-api",
        "version": "1.0.0"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
