"""Check CRUD API endpoints."""
from typing import List

from fastapi import APIRouter, Depends

from ..dependencies import AppServices, get_current_user_id, get_services
from ..schemas import CheckCreate, CheckResponse, CheckTestResponse, CheckUpdate

router = APIRouter(prefix="/api/checks", tags=["checks"])


@router.get("", response_model=List[CheckResponse])
async def list_checks(
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """List the signed-in user's checks."""
    checks = await services.accounts.list_checks(user_id)
    return [CheckResponse.model_validate(check, from_attributes=True) for check in checks]


@router.post("", response_model=CheckResponse)
async def create_check(
    data: CheckCreate,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Create a new check (limited per user)."""
    check = await services.accounts.create_check(user_id, data)
    return CheckResponse.model_validate(check, from_attributes=True)


@router.get("/{check_id}", response_model=CheckResponse)
async def get_check(
    check_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Get a specific check by ID."""
    check = await services.accounts.get_check(user_id, check_id)
    return CheckResponse.model_validate(check, from_attributes=True)


@router.put("/{check_id}", response_model=CheckResponse)
async def update_check(
    check_id: str,
    data: CheckUpdate,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Update a check's configuration."""
    check = await services.accounts.update_check(user_id, check_id, data)
    return CheckResponse.model_validate(check, from_attributes=True)


@router.delete("/{check_id}")
async def delete_check(
    check_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Delete a check."""
    await services.accounts.delete_check(user_id, check_id)
    return {"deleted": check_id}


@router.post("/{check_id}/reset", response_model=CheckResponse)
async def reset_check(
    check_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Forget a check's state; the next probe sets a new baseline without alerting."""
    check = await services.accounts.reset_check(user_id, check_id)
    return CheckResponse.model_validate(check, from_attributes=True)


@router.post("/{check_id}/test", response_model=CheckTestResponse)
async def test_check(
    check_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Probe a check once and return the outcome without recording it."""
    check = await services.accounts.get_check(user_id, check_id)
    outcome = await services.checker.probe(check)
    return CheckTestResponse(
        state=outcome.state,
        status_code=outcome.status_code,
        elapsed_ms=outcome.elapsed_ms,
        details=outcome.details,
    )
