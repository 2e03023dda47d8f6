"""Request-scoped dependencies shared by the routers."""

from fastapi import Depends, Header, HTTPException, Request, status

from mess_ledger.containers import AppContainer
from mess_ledger.domain.errors import NotFoundError, PermissionDeniedError
from mess_ledger.domain.models import Actor


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_member_id(x_member_id: str | None = Header(default=None)) -> str:
    """Return the caller's id; authentication happens upstream."""
    if not x_member_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return x_member_id


async def current_actor(
    mess_id: str,
    member_id: str = Depends(require_member_id),
    container: AppContainer = Depends(get_container),
) -> Actor:
    """Resolve the caller's role inside the mess addressed by the path."""
    container.mess_service.get_mess(mess_id)
    try:
        return container.mess_service.resolve_actor(mess_id, member_id)
    except NotFoundError as exc:
        raise PermissionDeniedError(
            f"{member_id} is not a member of mess {mess_id}"
        ) from exc
