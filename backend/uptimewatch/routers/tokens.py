"""Token API endpoints: sign-in, extend, sign-out."""
from fastapi import APIRouter, Depends

from ..dependencies import AppServices, get_services
from ..errors import InputError
from ..schemas import TokenCreate, TokenExtend, TokenResponse

router = APIRouter(prefix="/api/tokens", tags=["tokens"])


@router.post("", response_model=TokenResponse)
async def sign_in(data: TokenCreate, services: AppServices = Depends(get_services)):
    """Exchange phone and password for a session token."""
    user = await services.accounts.authenticate(data.phone, data.password)
    token = await services.sessions.create(user.id)
    return TokenResponse.model_validate(token, from_attributes=True)


@router.get("/{token_id}", response_model=TokenResponse)
async def get_token(token_id: str, services: AppServices = Depends(get_services)):
    """Look up a token."""
    token = await services.sessions.get(token_id)
    return TokenResponse.model_validate(token, from_attributes=True)


@router.put("/{token_id}", response_model=TokenResponse)
async def extend_token(
    token_id: str,
    data: TokenExtend,
    services: AppServices = Depends(get_services),
):
    """Extend a live token by another session length."""
    if not data.extend:
        raise InputError("Nothing to do: extend must be true")
    token = await services.sessions.extend(token_id)
    return TokenResponse.model_validate(token, from_attributes=True)


@router.delete("/{token_id}")
async def sign_out(token_id: str, services: AppServices = Depends(get_services)):
    """Invalidate a token."""
    await services.sessions.get(token_id)
    await services.sessions.invalidate(token_id)
    return {"deleted": token_id}
