"""
api/routes/v1/credentials.py -- Per-division credential repository routes.

Routes:
  GET  /divisions/{division_id}/credentials                  -- view repository
  POST /divisions/{division_id}/credentials                  -- add a credential
  PUT  /divisions/{division_id}/credentials/{credential_id}  -- partial update

Permissions (checked against the caller's LIVE record, before any lookup):
  read / add -- management and admin on any division; normal only on the
                division they are assigned to
  update     -- management and admin only; normal is always refused

Stored secrets are plaintext and returned as-is to authorized readers.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    CredentialCreate,
    CredentialListResponse,
    CredentialOut,
    CredentialPatch,
    CredentialResponse,
    DivisionCredentialsResponse,
    DivisionSummary,
)
from auth.dependencies import require_credential_editor, require_division_access
from auth.models import User
from org.models import Division
from org.store import OrgStore

logger = logging.getLogger("credvault.api.credentials")

router = APIRouter()


def _get_division_or_404(org_store: OrgStore, division_id: int) -> Division:
    division = org_store.get_division(division_id)
    if division is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Division not found."},
        )
    return division


@router.get("/divisions/{division_id}/credentials", response_model=DivisionCredentialsResponse)
def list_credentials(
    request: Request,
    division_id: int,
    current_user: User = Depends(require_division_access),
) -> DivisionCredentialsResponse:
    """Return the division's name and its full credential list."""
    org_store: OrgStore = request.app.state.org_store
    division = _get_division_or_404(org_store, division_id)
    creds = org_store.list_credentials(division_id)
    return DivisionCredentialsResponse(
        division=DivisionSummary.from_division(division),
        credentials=[CredentialOut.from_credential(c) for c in creds],
    )


@router.post("/divisions/{division_id}/credentials", response_model=CredentialListResponse, status_code=201)
def add_credential(
    request: Request,
    division_id: int,
    body: CredentialCreate,
    current_user: User = Depends(require_division_access),
) -> CredentialListResponse:
    """Append a credential and return the division's updated list."""
    org_store: OrgStore = request.app.state.org_store
    _get_division_or_404(org_store, division_id)
    cred = org_store.add_credential(division_id, body.system, body.username, body.password)
    logger.info("User id=%d added credential id=%d to division id=%d", current_user.id, cred.id, division_id)
    creds = org_store.list_credentials(division_id)
    return CredentialListResponse(
        message="Credential added",
        credentials=[CredentialOut.from_credential(c) for c in creds],
    )


@router.put("/divisions/{division_id}/credentials/{credential_id}", response_model=CredentialResponse)
def update_credential(
    request: Request,
    division_id: int,
    credential_id: int,
    body: CredentialPatch,
    current_user: User = Depends(require_credential_editor),
) -> CredentialResponse:
    """Change only the fields present in the body. Omitted fields keep their values."""
    org_store: OrgStore = request.app.state.org_store
    _get_division_or_404(org_store, division_id)

    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    updated = org_store.update_credential(division_id, credential_id, **fields)
    if updated is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Credential not found."},
        )
    if fields:
        logger.info(
            "User id=%d updated credential id=%d (%s)", current_user.id, credential_id, ", ".join(sorted(fields))
        )
    return CredentialResponse(message="Credential updated", credential=CredentialOut.from_credential(updated))
