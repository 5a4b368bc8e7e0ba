"""Order form processing pipeline.

Sequences rasterization, OCR, field extraction and the optional record
sink for one uploaded PDF. Stages run strictly in order on the calling
thread; every failure ends the run with a typed error and the run's
temporary files are always removed.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path

from order_ocr.errors import OrderOCRError, PipelineCancelled, SinkError
from order_ocr.extraction.field_extractor import ExtractedRecord, extract
from order_ocr.ocr.pdf_handler import PDFRasterizer, RasterPage
from order_ocr.ocr.tesseract_engine import TesseractEngine
from order_ocr.sinks.base import RecordSink
from order_ocr.utils.config import AppConfig
from order_ocr.utils.logger import get_logger

from .resources import temporary_files

logger = get_logger(__name__)


class PipelineStage(StrEnum):
    """States of a single pipeline run."""

    RECEIVED = "received"
    RASTERIZING = "rasterizing"
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    SINKING = "sinking"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run.

    ``state`` is ``COMPLETED`` or ``FAILED``; on failure ``stage`` names the
    stage that failed.
    ``record`` is kept when extraction succeeded but the sink did not.
    """

    run_id: str
    success: bool
    stage: PipelineStage
    record: ExtractedRecord | None = None
    images: list[RasterPage] = field(default_factory=list)
    text: str | None = None
    error: OrderOCRError | None = None
    persisted: bool = False
    processing_time_ms: float = 0.0

    @property
    def state(self) -> PipelineStage:
        """Terminal state of the run, ``COMPLETED`` or ``FAILED``."""
        return PipelineStage.COMPLETED if self.success else PipelineStage.FAILED

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str:
        if self.error is None:
            return "PDF processed successfully"
        return self.error.message


class OrderFormPipeline:
    """Runs the rasterize → OCR → extract → sink sequence.

    Args:
        rasterizer: Converts page 1 of the PDF into an image.
        ocr_engine: Recognizes text from the image.
        sink: Optional record sink; the sinking stage is skipped when ``None``.
    """

    def __init__(
        self,
        rasterizer: PDFRasterizer,
        ocr_engine: TesseractEngine,
        sink: RecordSink | None = None,
    ) -> None:
        self.rasterizer = rasterizer
        self.ocr_engine = ocr_engine
        self.sink = sink

    @classmethod
    def from_config(
        cls, config: AppConfig, sink: RecordSink | None = None
    ) -> "OrderFormPipeline":
        """Build a pipeline from application configuration."""
        return cls(
            rasterizer=PDFRasterizer(config.raster),
            ocr_engine=TesseractEngine(config.ocr),
            sink=sink,
        )

    def run(
        self,
        pdf_path: Path,
        cancel_event: threading.Event | None = None,
        run_id: str | None = None,
    ) -> PipelineResult:
        """Process one PDF and dispose of its temporary files.

        The PDF at ``pdf_path`` is owned by the run and deleted when it ends.

        Args:
            pdf_path: Uploaded source document.
            cancel_event: Checked between stages; once set the run aborts.
            run_id: Identifier used for logging and raster filenames.

        Returns:
            The run outcome. Pipeline errors are reported in the result,
            never raised.
        """
        run_id = run_id or uuid.uuid4().hex
        pdf_path = Path(pdf_path)
        start = time.perf_counter()
        stage = PipelineStage.RECEIVED
        images: list[RasterPage] = []
        record: ExtractedRecord | None = None
        text: str | None = None
        persisted = False

        logger.info("Run %s received %s", run_id, pdf_path.name)

        with temporary_files() as files:
            files.register(pdf_path)
            try:
                stage = PipelineStage.RASTERIZING
                self._check_cancelled(cancel_event, stage)
                files.register(self.rasterizer.output_path(run_id))
                page = self.rasterizer.rasterize(pdf_path, run_id)
                files.register(page.path)
                images.append(page)

                stage = PipelineStage.RECOGNIZING
                self._check_cancelled(cancel_event, stage)
                self.ocr_engine.check_language_data()
                text = self.ocr_engine.recognize(page.path)

                stage = PipelineStage.EXTRACTING
                self._check_cancelled(cancel_event, stage)
                record = extract(text)

                stage = PipelineStage.SINKING
                self._check_cancelled(cancel_event, stage)
                persisted = self._sink(record)
            except OrderOCRError as exc:
                if exc.stage is None:
                    exc.stage = stage.value
                log = logger.warning if isinstance(exc, SinkError) else logger.error
                log("Run %s failed at %s [%s]: %s", run_id, stage, exc.kind, exc.message)
                return PipelineResult(
                    run_id=run_id,
                    success=False,
                    stage=stage,
                    record=record,
                    images=images,
                    text=text,
                    error=exc,
                    processing_time_ms=_elapsed_ms(start),
                )

        logger.info("Run %s completed in %.0f ms", run_id, _elapsed_ms(start))
        return PipelineResult(
            run_id=run_id,
            success=True,
            stage=PipelineStage.COMPLETED,
            record=record,
            images=images,
            text=text,
            persisted=persisted,
            processing_time_ms=_elapsed_ms(start),
        )

    def _sink(self, record: ExtractedRecord) -> bool:
        if self.sink is None:
            logger.info("No sink configured, skipping persistence")
            return False
        self.sink.append(record, datetime.now(timezone.utc))
        return True

    @staticmethod
    def _check_cancelled(
        cancel_event: threading.Event | None, stage: PipelineStage
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled(f"Run cancelled before {stage}", stage=stage.value)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
