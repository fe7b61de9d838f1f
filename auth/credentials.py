"""
auth/credentials.py -- Persistence for the singleton admin credential.

Pattern: Repository (same role UserStore plays for a multi-user database,
reduced to one whole-file record). The service never touches auth.json
directly.

Failure policy:
  load()  -- missing or corrupt file reads as "not configured". That is
             fail-closed for protected routes (nobody can log in) and fail-open
             only toward the setup flow.
  save()  -- OSError becomes StorageError and propagates; a credential write
             that silently failed would lock the admin out.
  create()-- atomic create-if-absent. A readable record already on disk
             raises ConflictError, so two writers can never both win setup.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from auth.errors import ConflictError, StorageError
from auth.models import AdminCredential
from auth.storage import create_json, read_json, write_json

logger = logging.getLogger("admingate.auth")


class CredentialStore:
    """Repository for the AdminCredential record.

    Usage:
        store = CredentialStore(Path("data/auth.json"))
        if not store.is_configured():
            store.create(AdminCredential(...))
        cred = store.load()
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Optional[AdminCredential]:
        """Return the stored credential, or None if absent or unreadable."""
        try:
            data = read_json(self.path)
        except (OSError, ValueError) as exc:
            logger.warning("Credential file %s is unreadable (%s); treating as not configured", self.path, exc)
            return None
        if data is None:
            return None
        try:
            return AdminCredential.from_record(data)
        except (KeyError, TypeError, AttributeError) as exc:
            logger.warning("Credential file %s is malformed (%s); treating as not configured", self.path, exc)
            return None

    def is_configured(self) -> bool:
        return self.load() is not None

    def save(self, credential: AdminCredential) -> None:
        """Overwrite the record. Raises StorageError on I/O failure."""
        try:
            write_json(self.path, credential.to_record(), indent=2)
        except OSError as exc:
            raise StorageError(f"Could not write credential file: {exc}") from exc

    def create(self, credential: AdminCredential) -> None:
        """Persist ``credential`` only if no valid record exists yet.

        An existing but unreadable file does not count as configured (load()
        says so), so it is replaced rather than blocking setup forever. This
        fallback assumes a single writer process; see DESIGN.md.
        """
        try:
            create_json(self.path, credential.to_record(), indent=2)
            return
        except FileExistsError:
            if self.load() is not None:
                raise ConflictError() from None
            logger.warning("Replacing unreadable credential file %s", self.path)
        except OSError as exc:
            raise StorageError(f"Could not write credential file: {exc}") from exc
        self.save(credential)

