from fastapi import APIRouter, Depends, HTTPException

from authapp.api.deps import Owner, get_current_owner, get_store
from authapp.core.config import settings
from authapp.core.security import qr_png_base64_from_text
from authapp.schemas.two_factor import (
    TwoFASetupOut, TwoFAVerifyIn, TwoFADisableIn,
    BackupCodeIn, BackupCodesOut, BackupCodesStatusOut,
)
from authapp.services import two_factor as svc
from authapp.services.store import CredentialStore

router = APIRouter(prefix="/2fa", tags=["2fa"])

@router.post("/setup", response_model=TwoFASetupOut)
async def twofa_setup(
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    # secreto nuevo; si ya tenía uno, queda pendiente hasta que confirme
    enrollment = await svc.setup_two_factor(
        store,
        owner_id=owner.id,
        account_label=owner.name,
        issuer=settings.TOTP_ISSUER,
        params=settings.totp_params,
        backup_code_count=settings.BACKUP_CODE_COUNT,
    )
    return TwoFASetupOut(
        secret=enrollment.binding.secret,
        otpauth_url=enrollment.provisioning_uri,
        qr_base64_png=qr_png_base64_from_text(enrollment.provisioning_uri),
        backup_codes=[c.code for c in enrollment.backup_codes],
    )

@router.post("/enable")
async def twofa_enable(
    body: TwoFAVerifyIn,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    if not await svc.confirm_two_factor(store, owner.id, body.otp, settings.TOTP_WINDOW):
        raise HTTPException(status_code=400, detail="OTP inválido")
    return {"ok": True}

@router.post("/verify")
async def twofa_verify(
    body: TwoFAVerifyIn,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    if not await svc.verify_second_factor(store, owner.id, body.otp, settings.TOTP_WINDOW):
        raise HTTPException(status_code=401, detail="OTP inválido")
    return {"ok": True}

@router.post("/backup")
async def twofa_backup(
    body: BackupCodeIn,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    # BackupCodeNotFound -> 400 en el handler global, mismo mensaje siempre
    await svc.redeem_backup_code(store, owner.id, body.code)
    return {"ok": True}

@router.get("/backup-codes", response_model=BackupCodesStatusOut)
async def twofa_backup_status(
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    return BackupCodesStatusOut(remaining=await store.count_remaining_backup_codes(owner.id))

@router.post("/backup-codes", response_model=BackupCodesOut)
async def twofa_backup_regenerate(
    body: TwoFAVerifyIn,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    codes = await svc.regenerate_backup_codes(
        store, owner.id, body.otp, settings.BACKUP_CODE_COUNT, settings.TOTP_WINDOW
    )
    if codes is None:
        raise HTTPException(status_code=400, detail="OTP inválido")
    return BackupCodesOut(backup_codes=[c.code for c in codes])

@router.post("/disable")
async def twofa_disable(
    body: TwoFADisableIn,
    owner: Owner = Depends(get_current_owner),
    store: CredentialStore = Depends(get_store),
):
    if not await svc.disable_two_factor(store, owner.id, body.otp, settings.TOTP_WINDOW):
        raise HTTPException(status_code=400, detail="OTP inválido")
    return {"ok": True}
