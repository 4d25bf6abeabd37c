from dataclasses import dataclass
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from authapp.core.config import settings
from authapp.core.db import get_db
from authapp.core.security import SecretBox
from authapp.services.store import CredentialStore


bearer = HTTPBearer(auto_error=True)


@dataclass(frozen=True)
class Owner:
    id: str
    name: str


async def get_current_owner(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Owner:
    """
    El token lo emite el servicio de cuentas; acá solo se valida y se leen
    ``sub`` (id del dueño) y ``name`` (label de la cuenta para el otpauth URI).
    """
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET no configurado")
    try:
        payload = jwt.decode(creds.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Token inválido")

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise HTTPException(status_code=401, detail="Token inválido")
    name = payload.get("name")
    return Owner(id=sub, name=name if isinstance(name, str) and name else sub)


async def get_store(db: AsyncSession = Depends(get_db)) -> AsyncGenerator[CredentialStore, None]:
    yield CredentialStore(db, SecretBox.from_settings())
