"""Tests for the pipeline orchestrator and temporary file handling."""

import threading
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from pdf2image.exceptions import PDFPageCountError

from order_ocr.errors import (
    ConversionError,
    MissingLanguageResource,
    OcrError,
    SinkError,
)
from order_ocr.extraction.field_extractor import ExtractedRecord
from order_ocr.ocr.pdf_handler import PDFRasterizer
from order_ocr.ocr.tesseract_engine import TesseractEngine
from order_ocr.pipeline.orchestrator import (
    OrderFormPipeline,
    PipelineResult,
    PipelineStage,
)
from order_ocr.pipeline.resources import TemporaryFiles, temporary_files
from order_ocr.sinks.sheets import GoogleSheetsSink
from order_ocr.utils.config import AppConfig, SheetsConfig


def _fake_convert(pdf_path: str, **kwargs: object) -> list[str]:
    out = Path(str(kwargs["output_folder"])) / f"{kwargs['output_file']}.{kwargs['fmt']}"
    out.write_bytes(b"\x89PNG fake")
    return [str(out)]


@pytest.fixture
def fake_convert():
    with patch(
        "order_ocr.ocr.pdf_handler.convert_from_path", side_effect=_fake_convert
    ) as mock_convert:
        yield mock_convert


@pytest.fixture
def ocr_engine(order_text: str) -> MagicMock:
    engine = MagicMock(spec=TesseractEngine)
    engine.recognize.return_value = order_text
    return engine


@pytest.fixture
def images_dir(app_config: AppConfig) -> Path:
    return Path(app_config.raster.output_dir)


def _make_pipeline(
    config: AppConfig, engine: MagicMock, sink: MagicMock | None = None
) -> OrderFormPipeline:
    return OrderFormPipeline(PDFRasterizer(config.raster), engine, sink=sink)


def _leftover_images(images_dir: Path) -> list[Path]:
    return list(images_dir.glob("*")) if images_dir.exists() else []


class TestOrderFormPipeline:
    """Tests for OrderFormPipeline.run."""

    def test_successful_run_without_sink(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
        images_dir: Path,
    ) -> None:
        pipeline = _make_pipeline(app_config, ocr_engine)
        result = pipeline.run(sample_pdf, run_id="run1")

        assert isinstance(result, PipelineResult)
        assert result.success is True
        assert result.stage == PipelineStage.COMPLETED
        assert result.state == PipelineStage.COMPLETED
        assert result.error is None
        assert result.error_kind is None
        assert result.persisted is False
        assert result.record.requested_by.name == "Juan Perez"
        assert result.record.deliver_to.notes == "Tocar timbre"
        assert len(result.images) == 1
        assert result.images[0].path.name == "page-run1-1.png"

        ocr_engine.check_language_data.assert_called_once()
        ocr_engine.recognize.assert_called_once_with(result.images[0].path)
        assert not sample_pdf.exists()
        assert _leftover_images(images_dir) == []

    def test_successful_run_with_sink(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
    ) -> None:
        sink = MagicMock()
        result = _make_pipeline(app_config, ocr_engine, sink).run(sample_pdf)

        assert result.success is True
        assert result.persisted is True
        sink.append.assert_called_once()
        record, processed_at = sink.append.call_args.args
        assert isinstance(record, ExtractedRecord)
        assert record == result.record
        assert isinstance(processed_at, datetime)
        assert processed_at.tzinfo is not None

    def test_conversion_failure(
        self,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        tmp_path: Path,
        images_dir: Path,
    ) -> None:
        corrupt = tmp_path / "corrupt.pdf"
        corrupt.write_bytes(b"")
        sink = MagicMock()

        with patch(
            "order_ocr.ocr.pdf_handler.convert_from_path",
            side_effect=PDFPageCountError("Unable to get page count."),
        ):
            result = _make_pipeline(app_config, ocr_engine, sink).run(corrupt)

        assert result.success is False
        assert result.stage == PipelineStage.RASTERIZING
        assert result.state == PipelineStage.FAILED
        assert isinstance(result.error, ConversionError)
        assert result.error_kind == "CONVERSION_ERROR"
        assert result.record is None
        ocr_engine.recognize.assert_not_called()
        sink.append.assert_not_called()
        assert not corrupt.exists()
        assert _leftover_images(images_dir) == []

    def test_partial_raster_is_cleaned_up(
        self,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
        images_dir: Path,
    ) -> None:
        def _convert_then_fail(pdf_path: str, **kwargs: object) -> list[str]:
            _fake_convert(pdf_path, **kwargs)
            raise OSError("disk full")

        with patch(
            "order_ocr.ocr.pdf_handler.convert_from_path",
            side_effect=_convert_then_fail,
        ):
            result = _make_pipeline(app_config, ocr_engine).run(sample_pdf)

        assert result.error_kind == "CONVERSION_ERROR"
        assert _leftover_images(images_dir) == []

    def test_missing_language_data_fails_before_ocr(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
        images_dir: Path,
    ) -> None:
        ocr_engine.check_language_data.side_effect = MissingLanguageResource(
            "Language data for 'spa' not found", path="/x/spa.traineddata"
        )
        result = _make_pipeline(app_config, ocr_engine).run(sample_pdf)

        assert result.success is False
        assert result.stage == PipelineStage.RECOGNIZING
        assert result.error_kind == "MISSING_LANGUAGE_RESOURCE"
        ocr_engine.recognize.assert_not_called()
        assert _leftover_images(images_dir) == []

    def test_ocr_failure(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
    ) -> None:
        ocr_engine.recognize.side_effect = OcrError("OCR failed: engine crashed")
        sink = MagicMock()
        result = _make_pipeline(app_config, ocr_engine, sink).run(sample_pdf)

        assert result.success is False
        assert result.stage == PipelineStage.RECOGNIZING
        assert result.error_kind == "OCR_ERROR"
        assert "engine crashed" in result.message
        sink.append.assert_not_called()
        assert not sample_pdf.exists()

    def test_sink_failure_keeps_record(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
        images_dir: Path,
    ) -> None:
        sink = MagicMock()
        sink.append.side_effect = SinkError("Permission denied", reason="permission")
        result = _make_pipeline(app_config, ocr_engine, sink).run(sample_pdf)

        assert result.success is False
        assert result.stage == PipelineStage.SINKING
        assert result.error_kind == "SINK_ERROR"
        assert result.error.reason == "permission"
        assert result.persisted is False
        assert result.record is not None
        assert result.record.requested_by.email == "juan@example.com"
        assert not sample_pdf.exists()
        assert _leftover_images(images_dir) == []

    def test_sheets_transport_failure_keeps_record(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
        images_dir: Path,
    ) -> None:
        service = MagicMock()
        append = service.spreadsheets.return_value.values.return_value.append
        append.return_value.execute.side_effect = httplib2.ServerNotFoundError(
            "Unable to find the server at sheets.googleapis.com"
        )
        sink = GoogleSheetsSink(service, SheetsConfig(spreadsheet_id="sheet-123"))

        result = _make_pipeline(app_config, ocr_engine, sink).run(sample_pdf)

        assert result.success is False
        assert result.stage == PipelineStage.SINKING
        assert result.error_kind == "SINK_ERROR"
        assert result.error.reason == "other"
        assert result.record is not None
        assert result.record.requested_by.email == "juan@example.com"
        assert not sample_pdf.exists()
        assert _leftover_images(images_dir) == []

    def test_cancelled_before_start(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        sample_pdf: Path,
    ) -> None:
        cancel = threading.Event()
        cancel.set()
        result = _make_pipeline(app_config, ocr_engine).run(sample_pdf, cancel)

        assert result.success is False
        assert result.error_kind == "CANCELLED"
        assert result.stage == PipelineStage.RASTERIZING
        fake_convert.assert_not_called()
        assert not sample_pdf.exists()

    def test_cancelled_between_stages(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        order_text: str,
        sample_pdf: Path,
        images_dir: Path,
    ) -> None:
        cancel = threading.Event()

        def _recognize_then_cancel(path: Path) -> str:
            cancel.set()
            return order_text

        ocr_engine.recognize.side_effect = _recognize_then_cancel
        sink = MagicMock()
        result = _make_pipeline(app_config, ocr_engine, sink).run(sample_pdf, cancel)

        assert result.error_kind == "CANCELLED"
        assert result.stage == PipelineStage.EXTRACTING
        assert result.record is None
        sink.append.assert_not_called()
        assert _leftover_images(images_dir) == []

    def test_concurrent_runs_use_distinct_files(
        self,
        fake_convert: MagicMock,
        app_config: AppConfig,
        ocr_engine: MagicMock,
        tmp_path: Path,
    ) -> None:
        pipeline = _make_pipeline(app_config, ocr_engine)
        first = tmp_path / "a.pdf"
        second = tmp_path / "b.pdf"
        first.write_bytes(b"%PDF-1.4")
        second.write_bytes(b"%PDF-1.4")

        result_a = pipeline.run(first)
        result_b = pipeline.run(second)

        assert result_a.run_id != result_b.run_id
        assert result_a.images[0].path != result_b.images[0].path

    def test_from_config(self, app_config: AppConfig) -> None:
        pipeline = OrderFormPipeline.from_config(app_config)
        assert isinstance(pipeline.rasterizer, PDFRasterizer)
        assert isinstance(pipeline.ocr_engine, TesseractEngine)
        assert pipeline.sink is None


class TestTemporaryFiles:
    """Tests for scoped temporary file cleanup."""

    def test_release_deletes_registered_files(self, tmp_path: Path) -> None:
        target = tmp_path / "upload.pdf"
        target.write_bytes(b"data")

        with temporary_files() as files:
            files.register(target)
            assert target.exists()

        assert not target.exists()

    def test_release_on_exception(self, tmp_path: Path) -> None:
        target = tmp_path / "upload.pdf"
        target.write_bytes(b"data")

        with pytest.raises(RuntimeError):
            with temporary_files() as files:
                files.register(target)
                raise RuntimeError("boom")

        assert not target.exists()

    def test_missing_file_is_ignored(self, tmp_path: Path) -> None:
        files = TemporaryFiles()
        files.register(tmp_path / "never-created.png")
        assert files.release() == []

    def test_register_is_idempotent(self, tmp_path: Path) -> None:
        files = TemporaryFiles()
        files.register(tmp_path / "a.png")
        files.register(str(tmp_path / "a.png"))
        assert files.paths == [tmp_path / "a.png"]

    def test_delete_failure_is_logged_not_raised(self, tmp_path: Path) -> None:
        target = tmp_path / "locked.png"
        target.write_bytes(b"data")
        files = TemporaryFiles()
        files.register(target)

        with patch.object(Path, "unlink", side_effect=PermissionError("locked")):
            failures = files.release()

        assert len(failures) == 1
        assert failures[0].kind == "CLEANUP_ERROR"
        assert failures[0].path == str(target)
