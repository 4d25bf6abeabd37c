from fastapi import APIRouter, Depends

from authapp.api.deps import Owner, get_current_owner, get_store
from authapp.core.config import settings
from authapp.schemas.two_factor import AuthCodeCreate, AuthCodeOut
from authapp.services import two_factor as svc
from authapp.services.store import CredentialStore

router = APIRouter(prefix="/api/auth-codes", tags=["auth-codes"])

# ---------- helpers ----------
def _out(sc: svc.ServiceCode) -> AuthCodeOut:
    params = sc.binding.params
    return AuthCodeOut(
        service_name=sc.binding.label,
        current_code=sc.code,
        seconds_remaining=sc.seconds_remaining,
        algorithm=params.algorithm.value,
        digits=params.digits,
        period=params.step_seconds,
    )

@router.post("", response_model=AuthCodeOut, status_code=201)
async def create_auth_code(
    payload: AuthCodeCreate,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    # InvalidSecretFormat -> 400 (handler global)
    sc = await svc.add_service_entry(
        store, owner.id, payload.service_name, payload.secret_key, settings.totp_params
    )
    return _out(sc)

@router.get("", response_model=list[AuthCodeOut])
async def list_auth_codes(
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    return [_out(sc) for sc in await svc.list_service_codes(store, owner.id)]

@router.post("/{service_name}/refresh", response_model=AuthCodeOut)
async def refresh_auth_code(
    service_name: str,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    return _out(await svc.service_code(store, owner.id, service_name))

@router.delete("/{service_name}", status_code=204)
async def delete_auth_code(
    service_name: str,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    await svc.remove_service_entry(store, owner.id, service_name)
