"""Pydantic response schemas for the FastAPI endpoints."""

from pydantic import BaseModel, Field

from order_ocr.pipeline.orchestrator import PipelineResult


class RequestedByResponse(BaseModel):
    """Requester block of an extracted order form."""

    id_number: str = ""
    name: str = ""
    phone: str = ""
    email: str = ""


class DeliverToResponse(BaseModel):
    """Delivery block of an extracted order form."""

    name: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""


class OrderRecordResponse(BaseModel):
    """Extracted order form record."""

    requested_by: RequestedByResponse = Field(default_factory=RequestedByResponse)
    deliver_to: DeliverToResponse = Field(default_factory=DeliverToResponse)


class RasterImageResponse(BaseModel):
    """Reference to a rasterized page produced during the run."""

    path: str
    page: int


class ProcessResponse(BaseModel):
    """Response schema for a PDF processing request."""

    success: bool
    message: str
    run_id: str | None = None
    state: str | None = None
    stage: str | None = None
    data: OrderRecordResponse | None = None
    images: list[RasterImageResponse] = Field(default_factory=list)
    persisted: bool = False
    error: str | None = None
    error_kind: str | None = None
    processing_time_ms: float = 0.0

    @classmethod
    def from_result(cls, result: PipelineResult) -> "ProcessResponse":
        """Build the response body for a finished pipeline run."""
        return cls(
            success=result.success,
            message=result.message,
            run_id=result.run_id,
            state=result.state.value,
            stage=result.stage.value,
            data=(
                OrderRecordResponse(**result.record.to_dict())
                if result.record is not None
                else None
            ),
            images=[RasterImageResponse(**page.to_dict()) for page in result.images],
            persisted=result.persisted,
            error=result.error.message if result.error else None,
            error_kind=result.error_kind,
            processing_time_ms=result.processing_time_ms,
        )


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    language_data_available: bool
    sink_configured: bool
