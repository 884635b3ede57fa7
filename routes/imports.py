"""
Spreadsheet import and export API routes.
"""

from fastapi import APIRouter, Query, UploadFile, File, Form
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional
from io import BytesIO
import structlog

from models.imports import ImportResponse, ImportTarget
from services.import_service import get_import_service
from services.export_service import get_export_service
from exceptions import AppError, EmptyInputError

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# IMPORT ROUTES
# ===================

@router.get("/targets")
async def list_targets():
    """List the supported import targets."""
    return {"targets": [t.value for t in ImportTarget]}


@router.post("/imports/{target}", response_model=ImportResponse)
async def upload_spreadsheet(
    target: str,
    file: UploadFile = File(...),
    dry_run: bool = Query(False, description="Reconcile only, write nothing"),
    period_id: Optional[str] = Form(None, description="Issue plan period for plan entries"),
    updated_by: Optional[str] = Form(None, description="User recorded on plan entries")
):
    """
    Import a CSV or Excel sheet into one collection.

    The header row is detected automatically. Rows are matched against
    existing records and master data; unmatched references are listed
    in the response message.

    Raises:
        400: Unknown import target
        422: File could not be read or has no data rows
    """
    logger.info(
        "spreadsheet_upload_started",
        target=target,
        filename=file.filename,
        content_type=file.content_type,
        dry_run=dry_run
    )

    try:
        content = await file.read()
        if not content:
            raise EmptyInputError("Uploaded file is empty")

        context = {}
        if period_id:
            context["periodId"] = period_id
        if updated_by:
            context["updatedBy"] = updated_by

        report = get_import_service().import_file(
            BytesIO(content),
            target,
            filename=file.filename,
            context=context or None,
            dry_run=dry_run
        )
        return ImportResponse.from_report(report, dry_run=dry_run)

    except Exception as e:
        return handle_error(e)


# ===================
# EXPORT ROUTES
# ===================

@router.get("/exports/{target}")
async def export_spreadsheet(target: str):
    """
    Download a collection as an .xlsx sheet.

    Headers match the import layout, so the file can be edited and
    uploaded again.
    """
    try:
        import_service = get_import_service()
        export_service = get_export_service()

        master_data = import_service.load_master_data(target)
        output = export_service.export(target, master_data)
        filename = export_service.filename_for(target)

        logger.info("spreadsheet_export_ready", target=target, filename=filename)

        return StreamingResponse(
            output,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)
