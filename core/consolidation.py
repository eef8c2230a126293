# =============================================================================
# core/consolidation.py - Group VPN/RDP credentials into one user per email
# =============================================================================

from typing import Dict, Iterable, List, Optional

import pandas as pd

from core.models import ConsolidatedUser, CredentialRecord, ServiceType


def _parse_timestamp(value: Optional[str]) -> Optional[pd.Timestamp]:
    """Parse an ISO timestamp; None when unparseable"""
    if not value:
        return None
    parsed = pd.to_datetime(value, utc=True, errors='coerce')
    if pd.isna(parsed):
        return None
    return parsed


def _is_earlier(candidate: str, current: str) -> bool:
    candidate_ts = _parse_timestamp(candidate)
    current_ts = _parse_timestamp(current)
    if candidate_ts is None or current_ts is None:
        return False
    return candidate_ts < current_ts


def _is_later(candidate: str, current: str) -> bool:
    candidate_ts = _parse_timestamp(candidate)
    current_ts = _parse_timestamp(current)
    if candidate_ts is None or current_ts is None:
        return False
    return candidate_ts > current_ts


def email_key(email: Optional[str]) -> str:
    """Grouping key: trimmed, lower-cased email ('' when absent)"""
    if not email:
        return ''
    return email.strip().lower()


def consolidate_users_by_email(credentials: Iterable[CredentialRecord]) -> List[ConsolidatedUser]:
    """
    Consolidate credentials by email address.

    Users with the same email (case-insensitive, trimmed) are grouped together
    with all of their VPN and RDP credentials. Credentials without an email
    cannot be grouped and are left out.

    Args:
        credentials: VPN/RDP credential records

    Returns:
        One ConsolidatedUser per unique email, sorted by email
    """
    user_map: Dict[str, ConsolidatedUser] = {}

    for cred in credentials:
        key = email_key(cred.email)
        if not key:
            continue

        is_vpn = cred.service_type == ServiceType.VPN
        existing = user_map.get(key)

        if existing is None:
            user_map[key] = ConsolidatedUser(
                id=cred.id,
                email=cred.email,
                created_at=cred.created_at,
                updated_at=cred.updated_at,
                vpn_credentials=[cred] if is_vpn else [],
                rdp_credentials=[] if is_vpn else [cred],
                all_credentials=[cred],
                has_vpn=is_vpn,
                has_rdp=not is_vpn
            )
            continue

        if is_vpn:
            existing.vpn_credentials.append(cred)
            existing.has_vpn = True
        else:
            existing.rdp_credentials.append(cred)
            existing.has_rdp = True
        existing.all_credentials.append(cred)

        if _is_earlier(cred.created_at, existing.created_at):
            existing.created_at = cred.created_at
        if _is_later(cred.updated_at, existing.updated_at):
            existing.updated_at = cred.updated_at

    return sorted(user_map.values(), key=lambda user: email_key(user.email))


def get_credentials_summary(user: ConsolidatedUser) -> str:
    """Display summary such as '2 VPN + 1 RDP'"""
    parts = []

    if user.vpn_credentials:
        parts.append(f"{len(user.vpn_credentials)} VPN")
    if user.rdp_credentials:
        parts.append(f"{len(user.rdp_credentials)} RDP")

    return ' + '.join(parts) or 'No credentials'


def get_all_usernames(user: ConsolidatedUser) -> List[str]:
    """Unique usernames across VPN and RDP credentials, first-seen order"""
    usernames = [cred.username for cred in user.vpn_credentials + user.rdp_credentials]
    return list(dict.fromkeys(usernames))
