# =============================================================================
# core/device_type.py - Thin client vs full PC classification
# =============================================================================

from typing import Tuple

from core.credentials import is_valid_credential
from core.models import DeviceClassification, DeviceClassificationInput, DeviceType

OVERRIDE_DEVICE_TYPES = {
    DeviceType.THIN_CLIENT.value: DeviceType.THIN_CLIENT,
    DeviceType.FULL_PC.value: DeviceType.FULL_PC,
}

REASON_VPN = 'Full PC: Has VPN credentials for remote access'
REASON_INTUNE = 'Full PC: Device managed in Intune (e.g., mini PC at office)'
REASON_SERIAL_ONLY = 'Full PC: Has device serial number and no thin client indicators'
REASON_NO_SERIAL_NO_VPN = 'Thin Client: No device serial and no VPN credentials'
REASON_RDP_TERMINAL = 'Thin Client: Has RDP credentials but no VPN (terminal access only)'
REASON_UNKNOWN = 'Unknown: Insufficient information to determine device type'

_REASON_PREFIXES = {
    'Full PC': DeviceType.FULL_PC,
    'Thin Client': DeviceType.THIN_CLIENT,
    'Unknown': DeviceType.UNKNOWN,
}
_EXPLICIT_PREFIX = 'Explicitly set as '


def _evaluate(data: DeviceClassificationInput) -> Tuple[DeviceType, str]:
    """Walk the classification rules; first match wins"""
    override = OVERRIDE_DEVICE_TYPES.get(data.device_type or '')
    if override is not None:
        return override, f"{_EXPLICIT_PREFIX}{override.value}"

    has_valid_serial = is_valid_credential(data.device_serial_number)
    has_valid_vpn = (is_valid_credential(data.vpn_username) or
                     is_valid_credential(data.vpn_password))
    has_valid_rdp = (is_valid_credential(data.rdp_username) or
                     is_valid_credential(data.rdp_password))
    has_intune = bool(data.has_intune_device)

    # VPN users dial in remotely from a real workstation
    if has_valid_vpn:
        return DeviceType.FULL_PC, REASON_VPN

    if not has_valid_serial and not has_valid_vpn:
        # Office mini PCs are enrolled in Intune without a tracked serial
        if has_intune:
            return DeviceType.FULL_PC, REASON_INTUNE
        if has_valid_rdp:
            return DeviceType.THIN_CLIENT, REASON_NO_SERIAL_NO_VPN
        return DeviceType.THIN_CLIENT, REASON_NO_SERIAL_NO_VPN

    if has_valid_serial and not has_valid_vpn:
        if has_intune:
            return DeviceType.FULL_PC, REASON_INTUNE
        if has_valid_rdp:
            return DeviceType.THIN_CLIENT, REASON_RDP_TERMINAL
        return DeviceType.FULL_PC, REASON_SERIAL_ONLY

    # Unreachable after the VPN rule above
    if has_valid_serial and has_valid_vpn:
        return DeviceType.FULL_PC, REASON_VPN

    return DeviceType.UNKNOWN, REASON_UNKNOWN


def determine_device_type(data: DeviceClassificationInput) -> DeviceType:
    """
    Determine whether a user works from a thin client or a full PC.

    An explicit hardware inventory value of "thin_client" or "full_pc" always
    wins. Otherwise VPN credentials imply a full PC; with no serial and no VPN
    the user is on a thin client unless the device is managed in Intune; with a
    serial and no VPN, RDP-only access means a thin client.

    Args:
        data: Serial, VPN/RDP credentials, Intune membership and override

    Returns:
        Exactly one DeviceType
    """
    device_type, _ = _evaluate(data)
    return device_type


def get_device_type_reason(data: DeviceClassificationInput) -> str:
    """Human-readable justification for determine_device_type's result"""
    _, reason = _evaluate(data)
    return reason


def classify(data: DeviceClassificationInput) -> DeviceClassification:
    """Classify and explain in one pass"""
    device_type, reason = _evaluate(data)
    return DeviceClassification(device_type=device_type, reason=reason)


def reason_device_type(reason: str) -> DeviceType:
    """Map a reason string back to the device type it describes"""
    if reason.startswith(_EXPLICIT_PREFIX):
        return OVERRIDE_DEVICE_TYPES.get(reason[len(_EXPLICIT_PREFIX):], DeviceType.UNKNOWN)

    for prefix, device_type in _REASON_PREFIXES.items():
        if reason.startswith(prefix + ':'):
            return device_type
    return DeviceType.UNKNOWN
