# src/cbcloud/domains/utilities/models.py
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from cbcloud.domains.clipboard.models import EntryType


class ContentRequest(BaseModel):
    content: str = Field(..., min_length=1)
    type: EntryType

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content is required")
        return v


class ValidateContentRequest(ContentRequest):
    product_id: str


class FormatOptions(BaseModel):
    remove_extra_whitespace: bool = True
    normalize_line_endings: bool = True
    capitalize_sentences: bool = False
    remove_trailing_slash: bool = True


class FormatContentRequest(ContentRequest):
    format_options: FormatOptions = Field(default_factory=FormatOptions)


class ContentValidation(BaseModel):
    is_valid: bool = True
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ContentSummary(BaseModel):
    type: EntryType
    length: int
    estimated_size: Optional[int] = None


class ValidateContentResponse(BaseModel):
    validation: ContentValidation
    content: ContentSummary


class FormatContentResponse(BaseModel):
    original_content: str
    formatted_content: str
    changes: List[str]
    format_options: FormatOptions


class ContentAnalysis(BaseModel):
    type: EntryType
    length: int
    insights: List[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    suggestions: List[str] = Field(default_factory=list)


class BatchEntry(BaseModel):
    id: Optional[str] = None
    content: str


class BatchOperation(BaseModel):
    type: str


class BatchProcessRequest(BaseModel):
    entries: List[BatchEntry] = Field(..., min_length=1, max_length=100)
    operations: List[BatchOperation]


class BatchResult(BaseModel):
    id: Optional[str]
    original: str
    processed: str
    operations: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class BatchProcessResponse(BaseModel):
    total_processed: int
    results: List[BatchResult]


class FormatSpec(BaseModel):
    extensions: List[str]
    mime_types: List[str]
    max_size: str
    features: List[str]


class GlobalLimits(BaseModel):
    max_entries_per_product: int
    max_tags_per_entry: int
    max_shared_users: int


class SupportedFormatsResponse(BaseModel):
    formats: dict[str, FormatSpec]
    global_limits: GlobalLimits
