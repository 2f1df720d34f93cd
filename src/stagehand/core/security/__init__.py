"""Security utilities for Stagehand."""

from stagehand.core.security.vault import Vault, generate_key, get_vault_key

__all__ = ["Vault", "generate_key", "get_vault_key"]
