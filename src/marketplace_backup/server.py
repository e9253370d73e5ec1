"""HTTP transport for backup export and restore.

Thin FastAPI layer in front of the backup pipeline:

- ``GET  /api/backup/all``      -- export all four tables as JSON
- ``POST /api/backup/restore``  -- full-replace restore from an uploaded
  JSON file (multipart field ``backup_file``)
- ``GET  /api/health``          -- database connectivity check

Uploads are streamed to the configured upload directory with a size
ceiling; oversized bodies are rejected with 413 before the pipeline sees
them.  The pipeline deletes the temporary file once the restore ends.

Usage:
    import uvicorn
    from marketplace_backup.server import create_app

    uvicorn.run(create_app(), host="0.0.0.0", port=3000)
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace_backup.adapters.base import DatabaseClient
from marketplace_backup.backup.backup_restore import export_backup, restore_from_file
from marketplace_backup.config.loader import load_config
from marketplace_backup.config.models import AppConfig
from marketplace_backup.errors import (
    BackupError,
    MalformedInputError,
    PersistenceError,
    RollbackFailure,
    ValidationError,
)
from marketplace_backup.factory import get_adapter

logger = logging.getLogger(__name__)

router = APIRouter()

# Chunk size for streaming reads
READ_CHUNK_SIZE = 64 * 1024  # 64KB

# Multipart framing allowance on top of the file size limit
MULTIPART_OVERHEAD = 64 * 1024

BACKUP_CONTENT_TYPE = "application/json"


def get_db(request: Request) -> DatabaseClient:
    """Adapter created at application startup."""
    return request.app.state.adapter


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _failure_reason(error: BaseException | None) -> str:
    """Short reason for a store failure, without driver messages or SQL."""
    if error is None:
        return "unknown"
    if isinstance(error, TimeoutError):
        return "timeout"
    return type(error).__name__


async def save_upload_with_limit(
    file: UploadFile,
    upload_dir: Path,
    max_size: int,
) -> Path:
    """Stream an uploaded file to disk with a size limit.

    Reads the file in chunks and stops early if the max size is exceeded,
    removing the partial file.

    Args:
        file: The uploaded file
        upload_dir: Directory for temporary uploads
        max_size: Maximum allowed file size in bytes

    Returns:
        Path of the stored file

    Raises:
        HTTPException: 413 if file exceeds max_size
    """
    upload_dir.mkdir(parents=True, exist_ok=True)
    original_name = Path(file.filename or "backup.json").name
    target = upload_dir / f"{uuid4()}-{original_name}"
    total_size = 0

    try:
        out = await asyncio.to_thread(open, target, "wb")
        try:
            while chunk := await file.read(READ_CHUNK_SIZE):
                total_size += len(chunk)
                if total_size > max_size:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=f"File too large. Maximum size: {max_size} bytes",
                    )
                await asyncio.to_thread(out.write, chunk)
        finally:
            await asyncio.to_thread(out.close)
    except BaseException:
        target.unlink(missing_ok=True)
        raise

    return target


@router.get("/backup/all")
async def export_all(db: Annotated[DatabaseClient, Depends(get_db)]):
    """Export all users, products, orders and settings as one JSON document."""
    try:
        document = await export_backup(db)
    except PersistenceError:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Server error while exporting data",
        )
    return document.model_dump()


@router.post("/backup/restore")
async def restore_upload(
    request: Request,
    db: Annotated[DatabaseClient, Depends(get_db)],
    config: Annotated[AppConfig, Depends(get_config)],
    backup_file: UploadFile | None = File(None),
):
    """Replace the whole database with an uploaded backup.

    WARNING: This deletes ALL existing data!
    """
    max_size = config.backup.max_upload_bytes

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        if int(content_length) > max_size + MULTIPART_OVERHEAD:
            return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "File too large")

    if backup_file is None:
        return _error(status.HTTP_400_BAD_REQUEST, "Backup file was not uploaded")

    content_type = (backup_file.content_type or "").split(";")[0].strip().lower()
    if content_type != BACKUP_CONTENT_TYPE:
        return _error(
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            "Only JSON backup files are accepted",
        )

    try:
        path = await save_upload_with_limit(
            backup_file, Path(config.backup.upload_dir), max_size
        )
    except HTTPException as e:
        return _error(e.status_code, e.detail)

    try:
        summary = await restore_from_file(
            db,
            path,
            timeout=config.backup.restore_timeout_seconds,
            remove_after=True,
        )
    except MalformedInputError as e:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON file format", detail=str(e))
    except ValidationError as e:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            f"Missing required fields: {', '.join(e.missing_fields)}",
            missing_fields=e.missing_fields,
        )
    except RollbackFailure as e:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Restore failed and the rollback also failed. "
            "Data integrity cannot be guaranteed; check the database before continuing.",
            phase=e.phase,
            detail=_failure_reason(e.original_error),
            integrity_guaranteed=False,
        )
    except PersistenceError as e:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Server error while restoring the database. No data was changed.",
            phase=e.phase,
            detail=_failure_reason(e.__cause__),
            data_changed=False,
        )
    except BackupError as e:
        logger.error(f"Restore failed: {e}")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Server error while restoring the database. No data was changed.",
            data_changed=False,
        )

    return {
        "success": True,
        "message": "Database restored successfully",
        "imported": summary.counts(),
        "warnings": summary.warnings,
    }


@router.get("/health")
async def health(db: Annotated[DatabaseClient, Depends(get_db)]):
    """Report whether the database answers."""
    try:
        ok = await db.test_connection()
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        ok = False
    if not ok:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Database unavailable", database=False)
    return {"status": "ok", "database": True}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.warning(f"404 Not Found: {request.method} {request.url.path}")
        return _error(exc.status_code, "Route not found")
    return _error(exc.status_code, str(exc.detail))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(
    config: AppConfig | None = None,
    adapter: DatabaseClient | None = None,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Loaded configuration; read from ``db.toml`` when ``None``.
        adapter: Adapter to use.  When ``None``, one is created at startup
            from the active profile and closed at shutdown.
        profile_name: Profile to connect with when creating the adapter.
        env_prefix: Prefix for ``DB_PROFILE`` / ``DATABASE_URL`` lookup.
    """
    app_config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = adapter is None
        app.state.adapter = (
            adapter if adapter is not None
            else await get_adapter(app_config, profile_name, env_prefix)
        )
        logger.info("Backup API started")
        try:
            yield
        finally:
            if owned:
                await app.state.adapter.close()

    app = FastAPI(title="Marketplace Backup", lifespan=lifespan)
    app.state.config = app_config
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    app.include_router(router, prefix="/api")
    return app
