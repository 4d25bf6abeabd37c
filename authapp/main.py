from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authapp.api.v1.two_factor import router as two_factor_router
from authapp.api.v1.auth_codes import router as auth_codes_router
from authapp.core.config import settings
from authapp.core.errors import (
    TwoFactorError, BindingNotFound, EnrollmentNotConfirmed,
)
from authapp.core.logging import configure_logging


configure_logging(settings.LOG_LEVEL)

app = FastAPI(title=f"{settings.APP_NAME} 2FA API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# el resto de los errores del motor son 400
ERROR_STATUS = {
    BindingNotFound: 404,
    EnrollmentNotConfirmed: 409,
}

@app.exception_handler(TwoFactorError)
async def two_factor_error_handler(request: Request, exc: TwoFactorError):
    return JSONResponse(status_code=ERROR_STATUS.get(type(exc), 400), content={"detail": exc.detail})

app.include_router(two_factor_router)
app.include_router(auth_codes_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
