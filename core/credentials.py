# =============================================================================
# core/credentials.py - Credential presence normalization
# =============================================================================

from dataclasses import dataclass
from typing import Optional

# Literal placeholders upstream spreadsheets use for "intentionally blank"
NOT_APPLICABLE_SENTINELS = frozenset({'NA', 'N/A'})

ENCRYPTED_PASSWORD_PLACEHOLDER = '***ENCRYPTED***'
ENCRYPTED_PASSWORD_DISPLAY = '••••••••'


def is_valid_credential(value: Optional[str]) -> bool:
    """
    Check whether a credential-like field counts as present.

    Args:
        value: Serial number, username or password (may be None)

    Returns:
        False for None, empty, whitespace-only, "NA" or "N/A" (any case);
        True otherwise
    """
    if not value or not value.strip():
        return False
    return value.strip().upper() not in NOT_APPLICABLE_SENTINELS


@dataclass(frozen=True)
class CredentialValue:
    """Raw credential field with its normalized presence"""
    raw: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return is_valid_credential(self.raw)


def display_password(password: Optional[str], fallback: str = '—') -> str:
    """Mask encrypted placeholders; show fallback for missing passwords"""
    if not password:
        return fallback
    if password == ENCRYPTED_PASSWORD_PLACEHOLDER:
        return ENCRYPTED_PASSWORD_DISPLAY
    return password
