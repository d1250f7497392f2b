import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schoolcore.api import academics, results
from schoolcore.config import settings
from schoolcore.exceptions import (
    CoreError,
    NotProvisionedError,
    RemoteRejection,
    TermProgressionError,
    TransportFailure,
    ValidationFailure,
)
from schoolcore.middleware.logging import add_logging_middleware, setup_logging
from schoolcore.services.progression import SessionContextRegistry

# Initialize FastAPI app
app = FastAPI(
    title="School Academic Core API",
    description="Academic session progression and result aggregation for the school administration app",
    version="1.0.0",
)

# One confirmed session context per school, created on first use
app.state.session_contexts = SessionContextRegistry(settings.SESSION_CONTEXT_LIMIT)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
add_logging_middleware(app)

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@app.exception_handler(NotProvisionedError)
async def not_provisioned_handler(request: Request, exc: NotProvisionedError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": exc.message, "code": "not_provisioned"},
    )


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message},
    )


@app.exception_handler(TermProgressionError)
async def term_progression_handler(request: Request, exc: TermProgressionError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": exc.message},
    )


@app.exception_handler(RemoteRejection)
async def remote_rejection_handler(request: Request, exc: RemoteRejection):
    status_code = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.exception_handler(TransportFailure)
async def transport_failure_handler(request: Request, exc: TransportFailure):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": exc.message},
    )


@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError):
    logger.error(f"Academic core error: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": exc.message},
    )


# Custom exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )

# Include routers
app.include_router(academics.router, prefix="/api", tags=["Academic Sessions"])
app.include_router(results.router, prefix="/api", tags=["Results"])

@app.get("/", tags=["Root"])
async def root():
    return {"message": "School Academic Core API. Visit /docs for documentation."}

# Run the server
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("schoolcore.main:app", host="0.0.0.0", port=5000, reload=True)
