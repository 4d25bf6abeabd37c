from pydantic import BaseModel, Field

# --- 2FA de la cuenta ---
class TwoFASetupOut(BaseModel):
    secret: str
    otpauth_url: str
    qr_base64_png: str | None = None
    backup_codes: list[str]

class TwoFAVerifyIn(BaseModel):
    otp: str = Field(..., min_length=1, max_length=16)

class TwoFADisableIn(BaseModel):
    otp: str = Field(..., min_length=1, max_length=16)

class BackupCodeIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)

class BackupCodesOut(BaseModel):
    backup_codes: list[str]

class BackupCodesStatusOut(BaseModel):
    remaining: int

# --- auth codes (entradas de servicios) ---
class AuthCodeCreate(BaseModel):
    service_name: str = Field(..., min_length=1, max_length=255)
    secret_key: str = Field(..., min_length=1, max_length=512)

class AuthCodeOut(BaseModel):
    service_name: str
    current_code: str
    seconds_remaining: int
    algorithm: str
    digits: int
    period: int
