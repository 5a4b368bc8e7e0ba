"""FastAPI application for the order form OCR service.

Accepts one PDF per request, runs the processing pipeline in the worker
threadpool and returns the extracted record. Serve it with
``order-ocr serve`` or ``uvicorn --factory order_ocr.api.app:create_app``.
"""

import asyncio
import threading
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from order_ocr import __version__
from order_ocr.errors import InputValidationError, MissingLanguageResource
from order_ocr.pipeline.orchestrator import OrderFormPipeline
from order_ocr.sinks.sheets import GoogleSheetsSink
from order_ocr.utils.config import AppConfig, load_config
from order_ocr.utils.logger import get_logger

from .schemas import HealthResponse, ProcessResponse

logger = get_logger(__name__)

_UPLOAD_CHUNK = 1024 * 1024


def build_pipeline(config: AppConfig) -> OrderFormPipeline:
    """Create the shared pipeline, connecting the Sheets sink when configured.

    The sink is authenticated and verified once here, not per request.

    Raises:
        SinkError: If a spreadsheet is configured but cannot be reached.
    """
    sink = None
    if config.sheets.spreadsheet_id:
        sink = GoogleSheetsSink.from_config(config.sheets)
        sink.verify()
    else:
        logger.info("SPREADSHEET_ID not configured, records will not be persisted")
    return OrderFormPipeline.from_config(config, sink=sink)


def create_app(
    config: AppConfig | None = None, pipeline: OrderFormPipeline | None = None
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration. Loaded from disk when omitted.
        pipeline: Prebuilt pipeline. Built during startup when omitted.

    Returns:
        The configured application.
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "pipeline", None) is None:
            app.state.pipeline = build_pipeline(config)
        Path(config.upload.upload_dir).mkdir(parents=True, exist_ok=True)
        logger.info("Order OCR API ready, CORS origins: %s", config.api.cors_origins)
        yield

    app = FastAPI(
        title="Order Form OCR API",
        description="Extract requester and delivery data from scanned order forms",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(InputValidationError)
    async def _validation_error_handler(
        request: Request, exc: InputValidationError
    ) -> JSONResponse:
        logger.warning("Rejected upload: %s", exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message, "error_kind": exc.kind},
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Return service health status."""
        pipeline = _get_pipeline(request)
        try:
            pipeline.ocr_engine.check_language_data()
            language_ok = True
        except MissingLanguageResource:
            language_ok = False
        return HealthResponse(
            status="healthy",
            version=__version__,
            tesseract_available=pipeline.ocr_engine.is_available(),
            language_data_available=language_ok,
            sink_configured=pipeline.sink is not None,
        )

    @app.post("/api/process-pdf", response_model=ProcessResponse)
    async def process_pdf(
        request: Request,
        pdf_file: Annotated[UploadFile | None, File(alias="pdfFile")] = None,
    ) -> JSONResponse:
        """Process an uploaded order form PDF.

        Args:
            pdf_file: The PDF upload, sent as the ``pdfFile`` form field.

        Returns:
            Extraction result; HTTP 500 with an ``error_kind`` on failure.
        """
        pipeline = _get_pipeline(request)
        run_id = uuid.uuid4().hex
        pdf_path = await _store_upload(pdf_file, config, run_id)

        cancel_event = threading.Event()
        try:
            result = await run_in_threadpool(pipeline.run, pdf_path, cancel_event, run_id)
        except asyncio.CancelledError:
            cancel_event.set()
            raise
        except Exception as exc:
            logger.error("Processing failed: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        response = ProcessResponse.from_result(result)
        return JSONResponse(
            status_code=200 if result.success else 500,
            content=response.model_dump(),
        )

    return app


def _get_pipeline(request: Request) -> OrderFormPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        pipeline = build_pipeline(request.app.state.config)
        request.app.state.pipeline = pipeline
    return pipeline


async def _store_upload(
    pdf_file: UploadFile | None, config: AppConfig, run_id: str
) -> Path:
    """Validate an upload and write it under a unique name.

    Raises:
        InputValidationError: If no file was sent, it is not a PDF, or it
            exceeds the size limit.
    """
    if pdf_file is None or not pdf_file.filename:
        raise InputValidationError("No file was provided")
    if pdf_file.content_type not in config.upload.allowed_content_types:
        raise InputValidationError(
            f"Only PDF files are allowed, got {pdf_file.content_type}"
        )

    limit = config.upload.max_bytes
    upload_dir = Path(config.upload.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / f"{run_id}.pdf"

    size = 0
    try:
        with open(target, "wb") as out:
            while chunk := await pdf_file.read(_UPLOAD_CHUNK):
                size += len(chunk)
                if size > limit:
                    break
                out.write(chunk)
    except BaseException:
        target.unlink(missing_ok=True)
        raise

    if size > limit:
        target.unlink(missing_ok=True)
        raise InputValidationError(
            f"File exceeds the {limit // (1024 * 1024)} MB limit", status_code=413
        )

    logger.info("Stored upload %s as %s (%d bytes)", pdf_file.filename, target, size)
    return target
