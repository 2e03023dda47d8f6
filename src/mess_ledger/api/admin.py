"""Admin API endpoints with simple token auth."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from mess_ledger.api.dependencies import get_container
from mess_ledger.api.serializers import serialize_balance
from mess_ledger.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post(
    "/messes/{mess_id}/balances/recompute", dependencies=[Depends(require_admin)]
)
async def recompute_balances(
    mess_id: str, container: AppContainer = Depends(get_container)
) -> dict[str, object]:
    """Rebuild every member's cached balance from source records."""
    balances = container.balance_service.refresh_cached_balances(mess_id)
    return {"balances": [serialize_balance(balance) for balance in balances]}


@router.delete(
    "/messes/{mess_id}/reports/{year}/{month}", dependencies=[Depends(require_admin)]
)
async def invalidate_report(
    mess_id: str,
    year: int,
    month: int,
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    """Drop a cached monthly report."""
    container.report_service.invalidate(mess_id, year, month)
    return {"status": "ok"}
