# src/cbcloud/domains/utilities/routes.py
from fastapi import APIRouter, Depends

from cbcloud.core.database import Database, get_db
from cbcloud.domains.auth.dependencies import get_current_user_with_access
from cbcloud.domains.products.service import authorize_product
from cbcloud.domains.users.models import User
from cbcloud.domains.utilities import service
from cbcloud.domains.utilities.models import (
    BatchProcessRequest,
    BatchProcessResponse,
    ContentAnalysis,
    ContentRequest,
    FormatContentRequest,
    FormatContentResponse,
    SupportedFormatsResponse,
    ValidateContentRequest,
    ValidateContentResponse,
)

router = APIRouter(prefix="/utilities", tags=["Utilities"])


@router.post(
    "/validate-content",
    response_model=ValidateContentResponse,
    operation_id="validateContent",
)
async def validate_content(
    request: ValidateContentRequest,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> ValidateContentResponse:
    """Check content against the limits for its type. Requires product read access."""
    await authorize_product(db, user, request.product_id)
    return service.validate_content(request.content, request.type)


@router.post(
    "/format-content",
    response_model=FormatContentResponse,
    operation_id="formatContent",
)
async def format_content(
    request: FormatContentRequest,
    user: User = Depends(get_current_user_with_access),
) -> FormatContentResponse:
    return service.format_content(request.content, request.type, request.format_options)


@router.post(
    "/analyze-content",
    response_model=ContentAnalysis,
    operation_id="analyzeContent",
)
async def analyze_content(
    request: ContentRequest,
    user: User = Depends(get_current_user_with_access),
) -> ContentAnalysis:
    return service.analyze_content(request.content, request.type)


@router.post(
    "/batch-process",
    response_model=BatchProcessResponse,
    operation_id="batchProcess",
)
async def batch_process(
    request: BatchProcessRequest,
    user: User = Depends(get_current_user_with_access),
) -> BatchProcessResponse:
    """Apply text operations to up to 100 entries."""
    results = service.batch_process(request.entries, request.operations)
    return BatchProcessResponse(total_processed=len(results), results=results)


@router.get(
    "/supported-formats",
    response_model=SupportedFormatsResponse,
    operation_id="getSupportedFormats",
)
async def get_supported_formats() -> SupportedFormatsResponse:
    return service.supported_formats()
