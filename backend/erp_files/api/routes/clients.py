import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import delete, exists, func
from sqlalchemy.orm import Session

from erp_files.api.deps import CurrentUser, get_current_user, get_db_session, parse_path_id
from erp_files.core.errors import Conflict, NotFound, ValidationFailed, backend_failure
from erp_files.core.rbac import AccessPolicy, get_access_policy
from erp_files.models.client import Client
from erp_files.models.file import File
from erp_files.schemas.client import ClientOut, ClientPayload, ClientWithCount
from erp_files.schemas.envelope import envelope

logger = logging.getLogger("erp.clients")

router = APIRouter(prefix="/clients", tags=["clients"])


def _with_count(client: Client, file_count: int) -> dict:
    out = ClientWithCount.model_validate(client)
    out.file_count = int(file_count or 0)
    return out.model_dump(mode="json")


def _require_fields(payload: Optional[ClientPayload]) -> tuple:
    fields = payload.cleaned() if payload is not None else None
    if fields is None:
        raise ValidationFailed("Name and code are required")
    return fields


@router.get("")
def list_clients(
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """
    All clients with the number of files attached.

    Privileged roles see everything. Other callers see clients without files
    plus clients holding at least one file they uploaded.
    """
    with backend_failure("Failed to fetch clients", db, "erp.clients"):
        rows = (
            db.query(Client, func.count(File.id).label("file_count"))
            .outerjoin(File, File.client_id == Client.id)
            .filter(policy.client_listing_filter(current_user))
            .group_by(Client.id)
            .order_by(Client.id.asc())
            .all()
        )
        return envelope(data=[_with_count(client, count) for client, count in rows])


@router.get("/{client_id}")
def get_client(
    client_id: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    client_id = parse_path_id(client_id, "Client not found")
    # Unlike the listing, lookup by id is not scoped by role.
    with backend_failure("Failed to fetch client", db, "erp.clients"):
        client = db.get(Client, client_id)
        if not client:
            raise NotFound("Client not found")
        count = db.query(func.count(File.id)).filter(File.client_id == client_id).scalar()
        return envelope(data=_with_count(client, count))


@router.post("", status_code=201)
def create_client(
    payload: Optional[ClientPayload] = None,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    name, code = _require_fields(payload)
    with backend_failure("Failed to create client", db, "erp.clients"):
        client = Client(name=name, code=code)
        db.add(client)
        db.commit()
        db.refresh(client)
        logger.info("client created id=%s code=%s by=%s", client.id, client.code, current_user.id)
        return JSONResponse(
            status_code=201,
            content=envelope(data=ClientOut.model_validate(client).model_dump(mode="json")),
        )


@router.put("/{client_id}")
def update_client(
    client_id: str,
    payload: Optional[ClientPayload] = None,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Full overwrite of name and code."""
    name, code = _require_fields(payload)
    client_id = parse_path_id(client_id, "Client not found")
    with backend_failure("Failed to update client", db, "erp.clients"):
        client = db.get(Client, client_id)
        if not client:
            raise NotFound("Client not found")

        client.name = name
        client.code = code
        db.add(client)
        db.commit()
        db.refresh(client)
        logger.info("client updated id=%s by=%s", client.id, current_user.id)
        return envelope(
            data=ClientOut.model_validate(client).model_dump(mode="json"),
            message="Client updated successfully",
        )


@router.delete("/{client_id}")
def delete_client(
    client_id: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Delete a client that has no files.

    The "no files" guard is part of the DELETE statement itself, so a file
    inserted concurrently either lands before (delete affects 0 rows) or is
    rejected by the foreign key afterwards.
    """
    client_id = parse_path_id(client_id, "Client not found")
    with backend_failure("Failed to delete client", db, "erp.clients"):
        has_files = exists().where(File.client_id == client_id)
        result = db.execute(delete(Client).where(Client.id == client_id, ~has_files))
        if result.rowcount == 0:
            db.rollback()
            if db.get(Client, client_id) is None:
                raise NotFound("Client not found")
            raise Conflict("Cannot delete client with existing files")
        db.commit()
        logger.info("client deleted id=%s by=%s", client_id, current_user.id)
        return envelope(message="Client deleted successfully")
