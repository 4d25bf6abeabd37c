from authapp.models.credential_binding import CredentialBindingRow
from authapp.models.backup_code import BackupCodeRow
