"""
api/routes/v1/structure.py -- Organizational structure endpoint.

Returns every unit with its divisions as id/name pairs. Clients use it to
pick a division to open and to fill the assign-user form. Credentials are
never included here.
"""

from fastapi import APIRouter, Depends, Request

from api.models import StructureResponse, UnitSummary
from auth.dependencies import get_current_user
from org.store import OrgStore

# Auth policy:
# - GET /api/v1/structure: any authenticated user, whatever the role
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/structure", response_model=StructureResponse)
def get_structure(request: Request) -> StructureResponse:
    org_store: OrgStore = request.app.state.org_store
    return StructureResponse(units=[UnitSummary.from_unit(u) for u in org_store.list_units()])
