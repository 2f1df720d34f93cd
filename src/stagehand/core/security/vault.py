"""Encrypted credential vault.

Credentials are stored as Fernet tokens in a YAML file, grouped by role:

    roles:
      MGR:
        local_admin: gAAAAABl...
      "*":
        domain_join: gAAAAABl...

Entries under "*" apply to every role; a role-specific entry wins.

The key is never stored next to the tokens. It is read from an
environment variable (STAGEHAND_VAULT_KEY by default).

Usage:
    from stagehand.core.security import Vault

    vault = Vault.from_settings(settings.vault)
    password = vault.get_credential("MGR", "local_admin")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from cryptography.fernet import Fernet, InvalidToken

from stagehand.contracts import VaultDecryptionError

if TYPE_CHECKING:
    from stagehand.core.config import VaultSettings

ANY_ROLE = "*"


def generate_key() -> str:
    """Create a new url-safe base64 Fernet key."""
    return Fernet.generate_key().decode("ascii")


def get_vault_key(env_var: str) -> bytes:
    """Read the vault key from the environment.

    Raises:
        ValueError: If the variable is not set
    """
    try:
        key = os.environ[env_var]
    except KeyError:
        raise ValueError(
            f"Environment variable {env_var} must be set to use the credential vault. "
            "Create a key with 'stagehand vault generate-key'."
        ) from None
    return key.encode("ascii")


class Vault:
    """Decrypts role-scoped credentials on demand.

    Tokens stay encrypted in memory; each get_credential() call decrypts
    one value.
    """

    def __init__(self, key: bytes | str, credentials: dict[str, dict[str, str]] | None = None) -> None:
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise VaultDecryptionError(f"Vault key is not a valid Fernet key: {e}") from e
        self._credentials = credentials or {}

    @classmethod
    def from_file(cls, path: Path, key: bytes | str) -> Vault:
        """Load a credentials YAML file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file does not have the roles/name/token shape
        """
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return cls(key, _parse_credentials(raw, path))

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> Vault | None:
        """Build the vault described by settings, or None when no file is configured."""
        if settings.path is None:
            return None
        return cls.from_file(settings.path, get_vault_key(settings.key_env))

    def encrypt_text(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt_text(self, token: str) -> str:
        """Decrypt a single token.

        Raises:
            VaultDecryptionError: Wrong key, tampered or malformed token
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise VaultDecryptionError(
                "Vault token could not be decrypted (wrong key or corrupted token)"
            ) from e

    def get_credential(self, role: str, name: str) -> str:
        """Decrypt the credential `name` for `role`.

        Raises:
            KeyError: No such credential for this role or for every role
            VaultDecryptionError: The stored token cannot be decrypted
        """
        for scope in (role, ANY_ROLE):
            token = self._credentials.get(scope, {}).get(name)
            if token is not None:
                return self.decrypt_text(token)
        raise KeyError(f"No credential '{name}' for role '{role}'")

    def names(self, role: str) -> list[str]:
        """Credential names visible to a role (values are not decrypted)."""
        visible = set(self._credentials.get(ANY_ROLE, {})) | set(self._credentials.get(role, {}))
        return sorted(visible)


def _parse_credentials(raw: Any, path: Path) -> dict[str, dict[str, str]]:
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    roles = raw.get("roles", {})
    if not isinstance(roles, dict):
        raise ValueError(f"{path}: 'roles' must be a mapping of role -> credentials")

    parsed: dict[str, dict[str, str]] = {}
    for role, entries in roles.items():
        if not isinstance(entries, dict):
            raise ValueError(f"{path}: credentials for role '{role}' must be a mapping")
        for name, token in entries.items():
            if not isinstance(token, str):
                raise ValueError(f"{path}: credential '{role}.{name}' must be a token string")
        parsed[str(role)] = {str(name): token for name, token in entries.items()}
    return parsed
