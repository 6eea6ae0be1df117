"""Status overview API."""
from fastapi import APIRouter, Depends

from ..dependencies import AppServices, get_current_user_id, get_services
from ..schemas import CheckState, CheckSummary, StatusOverview

router = APIRouter(prefix="/api/status", tags=["status"])


@router.get("", response_model=StatusOverview)
async def get_status_overview(
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Get the signed-in user's check overview."""
    checks = await services.accounts.list_checks(user_id)

    counts = {state.value: 0 for state in CheckState}
    summaries = []
    for check in checks:
        counts[check.state] = counts.get(check.state, 0) + 1
        summaries.append(CheckSummary(
            id=check.id,
            url=check.url,
            method=check.method,
            state=check.state,
            last_checked=check.last_checked,
            last_changed=check.last_changed,
        ))

    return StatusOverview(
        total_checks=len(checks),
        checks_up=counts[CheckState.UP.value],
        checks_down=counts[CheckState.DOWN.value],
        checks_unknown=counts[CheckState.UNKNOWN.value],
        checks_remaining=max(services.accounts.max_checks - len(checks), 0),
        checks=summaries,
    )
