"""
Pydantic Schemas - Extraction Results & Request/Response Models
Prescription Scanner
"""

from pydantic import BaseModel, Field, field_validator
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

# int stays int so stored JSON keeps the caller's numbers verbatim
NonNegativeNumber = Union[Annotated[int, Field(ge=0)], Annotated[float, Field(ge=0)]]
UnitInterval = Union[Annotated[int, Field(ge=0, le=1)], Annotated[float, Field(ge=0.0, le=1.0)]]


# ── Extraction Result ──────────────────────────────────────────────
class MedicationEntry(BaseModel):
    """One medication line read from the prescription. Every key is required."""

    name: str
    dosage: str
    frequency: str
    duration: str
    quantity: NonNegativeNumber
    instructions: str
    confidence: UnitInterval


class PrescriptionMetadata(BaseModel):
    prescription_date: str
    doctor_name: str
    image_quality: Literal["good", "fair", "poor"]
    has_handwriting: bool


class ExtractionResult(BaseModel):
    """Structured prescription output from the AI model."""

    status: Literal["success", "partial", "error"]
    confidence: UnitInterval
    extracted_text: str
    medications: List[MedicationEntry]
    metadata: PrescriptionMetadata
    errors: List[str]


EXTRACTION_RESULT_KEYS = frozenset(ExtractionResult.model_fields)


def validate_result_shape(v: Any) -> Any:
    """Reject a malformed ExtractionResult but hand back the object as sent."""
    if isinstance(v, dict) and EXTRACTION_RESULT_KEYS & v.keys():
        ExtractionResult.model_validate(v)
    return v


# ── Result Store ───────────────────────────────────────────────────
class StoredPrescriptionRecord(BaseModel):
    id: int
    data: Any = None
    created_at: str


class PrescriptionCreate(BaseModel):
    """
    Body of POST /api/prescriptions.

    ``data`` is either an ExtractionResult or a raw JSON object. Objects
    carrying any extraction-result key are validated strictly so a
    half-formed result is rejected instead of stored. The stored payload is
    the object exactly as received.
    """

    data: Dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def validate_extraction_shape(cls, v: Any) -> Any:
        return validate_result_shape(v)

    def payload(self) -> Dict[str, Any]:
        return self.data


class PrescriptionCreated(BaseModel):
    success: bool = True
    id: int


# ── Result Archive ─────────────────────────────────────────────────
class SaveResultRequest(BaseModel):
    """An empty or missing ``result`` is reported as MISSING_RESULT by the route."""

    result: Optional[Dict[str, Any]] = None

    @field_validator("result", mode="before")
    @classmethod
    def validate_result(cls, v: Any) -> Any:
        if isinstance(v, dict) and v:
            ExtractionResult.model_validate(v)
        return v


class SaveResultResponse(BaseModel):
    success: bool = True
    filename: str
    filepath: str
    message: str


class ResultList(BaseModel):
    results: List[str]


# ── Upload / Extract ───────────────────────────────────────────────
class UploadAccepted(BaseModel):
    status: Literal["success"] = "success"
    message: str
    temp_path: str


class ExtractResponse(BaseModel):
    result: ExtractionResult
    id: Optional[int] = None
    filename: Optional[str] = None


# ── Errors ─────────────────────────────────────────────────────────
class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
    detail: Optional[str] = None
