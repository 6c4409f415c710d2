"""
/api/v1/users endpoints.
Directory lookups open to any signed-in user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.dependencies import get_current_principal, get_db, verify_api_key
from qaflow.schemas.workflow import UserSummary
from qaflow.workflow.identity import Principal
from qaflow.workflow.users import list_agents

router = APIRouter(prefix="/api/v1/users", tags=["users"], dependencies=[Depends(verify_api_key)])


@router.get("/agents", response_model=list[UserSummary])
async def agents(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
):
    """Agents sorted by name."""
    return [UserSummary.model_validate(u) for u in await list_agents(session)]
