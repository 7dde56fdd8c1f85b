import logging
import os
from typing import Optional, Union

from fastapi import APIRouter, Depends, File as FileParam, Form, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session

from erp_files.api.deps import CurrentUser, get_current_user, get_db_session, parse_path_id
from erp_files.core.errors import Forbidden, NotFound, ValidationFailed, backend_failure
from erp_files.core.rbac import AccessPolicy, get_access_policy
from erp_files.models.client import Client
from erp_files.models.file import File
from erp_files.schemas.envelope import envelope
from erp_files.schemas.file import FileOut
from erp_files.services.storage import remove_stored_file, store_upload

logger = logging.getLogger("erp.files")

router = APIRouter(prefix="/files", tags=["files"])


def _out(f: File) -> dict:
    return FileOut.model_validate(f).model_dump(mode="json")


def _blank(v: Optional[str]) -> bool:
    return v is None or not str(v).strip()


def _load_for_caller(db: Session, file_id: str, caller: CurrentUser, policy: AccessPolicy, denied: str) -> File:
    file_id = parse_path_id(file_id, "File not found")
    f = db.get(File, file_id)
    if not f:
        raise NotFound("File not found")
    # Non-owners get 403, not 404: the row's existence is not hidden.
    if not policy.can_access_file(caller, f):
        raise Forbidden(denied)
    return f


@router.get("")
def list_files(
    client_id: Optional[int] = None,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """Files of one client; non-privileged callers only see their own uploads."""
    if client_id is None:
        raise ValidationFailed("Client ID is required")
    with backend_failure("Failed to fetch files", db, "erp.files"):
        items = (
            db.query(File)
            .filter(File.client_id == client_id, policy.file_filter(current_user))
            .order_by(File.id.asc())
            .all()
        )
        return envelope(data=[_out(f) for f in items])


@router.get("/{file_id}")
def get_file(
    file_id: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    with backend_failure("Failed to fetch file", db, "erp.files"):
        f = _load_for_caller(db, file_id, current_user, policy, "Unauthorized to access this file")
        return envelope(data=_out(f))


@router.get("/{file_id}/download")
def download_file(
    file_id: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """Stream the stored binary back under the file's display name."""
    with backend_failure("Failed to fetch file", db, "erp.files"):
        f = _load_for_caller(db, file_id, current_user, policy, "Unauthorized to access this file")
        if not os.path.isfile(f.path):
            logger.warning("stored binary missing file_id=%s path=%s", f.id, f.path)
            raise NotFound("Stored file is missing")
        ext = os.path.splitext(f.path)[1]
        filename = f.name if not ext or f.name.lower().endswith(ext.lower()) else f"{f.name}{ext}"
        return FileResponse(f.path, media_type=f.type or "application/octet-stream", filename=filename)


@router.post("", status_code=201)
def upload_file(
    file: Union[UploadFile, str, None] = FileParam(default=None),
    client_id: Optional[str] = Form(default=None),
    name: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Accept a multipart upload and record its metadata.

    Form fields: client_id, name, category (required), description (optional),
    plus the binary under `file`. Fields are checked before anything touches
    the disk, so a rejected request leaves no stray binary behind.
    """
    # A file input left empty arrives as a plain field or with a blank filename.
    if not isinstance(file, UploadFile) or not file.filename:
        raise ValidationFailed("No file uploaded")
    if _blank(client_id) or _blank(name) or _blank(category):
        raise ValidationFailed("Client ID, name, and category are required")
    try:
        cid = int(str(client_id).strip())
    except ValueError:
        raise ValidationFailed("Client ID must be an integer")

    with backend_failure("Failed to upload file", db, "erp.files"):
        if db.get(Client, cid) is None:
            raise ValidationFailed("Client not found")

        stored = store_upload(file)
        try:
            record = File(
                client_id=cid,
                name=name.strip(),
                description=description.strip() if description and description.strip() else None,
                category=category.strip(),
                path=stored.path,
                type=stored.mimetype,
                size=stored.size,
                uploaded_by=current_user.id,
            )
            db.add(record)
            db.commit()
        except Exception:
            # Metadata never made it; do not keep an unreferenced binary.
            remove_stored_file(stored.path)
            raise
        db.refresh(record)

        logger.info(
            "file uploaded id=%s client_id=%s size=%d by=%s", record.id, cid, stored.size, current_user.id
        )
        return JSONResponse(status_code=201, content=envelope(data=_out(record)))


@router.delete("/{file_id}")
def delete_file(
    file_id: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """
    Remove the metadata row, then the stored binary.

    Disk removal is best-effort: a failure is logged and the request still
    succeeds, leaving an unreferenced binary rather than a dangling row.
    """
    with backend_failure("Failed to delete file", db, "erp.files"):
        f = _load_for_caller(db, file_id, current_user, policy, "Unauthorized to delete this file")
        path, record_id = f.path, f.id
        db.delete(f)
        db.commit()

    if not remove_stored_file(path):
        logger.warning("file row deleted but binary was not removed id=%s path=%s", record_id, path)
    logger.info("file deleted id=%s by=%s", record_id, current_user.id)
    return envelope(message="File deleted successfully")
