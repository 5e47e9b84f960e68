import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cleanse_ai.config import settings
from cleanse_ai.exceptions import HistoryStoreError, InvalidUploadError, PipelineError
from cleanse_ai.routes.cleaning import router as cleaning_router
from cleanse_ai.routes.history import router as history_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cleanse AI API", version="1.0.0", debug=settings.DEBUG)

cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins or ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "error_type": "PipelineError"},
    )


@app.exception_handler(InvalidUploadError)
async def invalid_upload_handler(request: Request, exc: InvalidUploadError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "error_type": "InvalidUploadError"},
    )


@app.exception_handler(HistoryStoreError)
async def history_store_error_handler(request: Request, exc: HistoryStoreError):
    logger.error(f"History store failure: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "History store unavailable", "error_type": "HistoryStoreError"},
    )


@app.get("/")
def root():
    return {"message": "Cleanse AI API is running", "version": "1.0.0"}


@app.get("/health")
def health():
    return {"status": "healthy"}


app.include_router(cleaning_router)
app.include_router(history_router)
