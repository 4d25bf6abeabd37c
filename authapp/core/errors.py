# authapp/core/errors.py
"""Errores tipados del motor TOTP / códigos de respaldo.

Todos son condiciones esperadas y recuperables: la capa HTTP los traduce a
respuestas en un único exception handler (ver ``authapp.main``).
"""


class TwoFactorError(Exception):
    """Base de todos los errores del motor 2FA."""

    default_detail = "Error de 2FA"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidSecretFormat(TwoFactorError):
    default_detail = "Formato de secreto inválido. Debe estar codificado en base32."


class UnsupportedParameter(TwoFactorError):
    default_detail = "Parámetro no soportado"


class InvalidConfiguration(TwoFactorError):
    default_detail = "Configuración inválida"


class InvalidCodeFormat(TwoFactorError):
    default_detail = "Formato de código inválido"


class BackupCodeNotFound(TwoFactorError):
    # mismo mensaje para "no existe" y "ya usado"
    default_detail = "Código de respaldo inválido"


class EnrollmentNotConfirmed(TwoFactorError):
    default_detail = "La configuración de 2FA todavía no fue confirmada"


class BindingNotFound(TwoFactorError):
    default_detail = "Credencial 2FA no encontrada"
