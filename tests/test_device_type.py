"""
tests/test_device_type.py
Thin client / full PC rule order and reason consistency.
"""

import itertools

import pytest

from core.device_type import (
    classify,
    determine_device_type,
    get_device_type_reason,
    reason_device_type,
)
from core.models import DeviceClassificationInput, DeviceType


def _input(**kwargs) -> DeviceClassificationInput:
    return DeviceClassificationInput(**kwargs)


# Representative values: absent, blank, sentinel, real
_SERIALS = [None, "", "NA", "SN123"]
_CREDS = [None, " ", "N/A", "value"]
_OVERRIDES = [None, "", "thin_client", "full_pc", "Desktop", "THIN_CLIENT"]


def _all_inputs():
    for serial, vpn_user, vpn_pass, rdp_user, intune, override in itertools.product(
            _SERIALS, _CREDS, [None, "pw"], _CREDS, [False, True], _OVERRIDES):
        yield _input(
            device_serial_number=serial,
            vpn_username=vpn_user,
            vpn_password=vpn_pass,
            rdp_username=rdp_user,
            has_intune_device=intune,
            device_type=override,
        )


class TestOverrides:
    @pytest.mark.parametrize("override,expected", [
        ("thin_client", DeviceType.THIN_CLIENT),
        ("full_pc", DeviceType.FULL_PC),
    ])
    def test_override_wins_over_everything(self, override, expected):
        data = _input(
            device_serial_number="SN1", vpn_username="jdoe", rdp_username="term1",
            has_intune_device=True, device_type=override,
        )
        assert determine_device_type(data) == expected
        assert get_device_type_reason(data) == f"Explicitly set as {override}"

    def test_unrecognized_override_is_ignored(self):
        data = _input(device_type="Laptop", rdp_username="term1")
        assert determine_device_type(data) == DeviceType.THIN_CLIENT
        assert not get_device_type_reason(data).startswith("Explicitly")


class TestRules:
    def test_vpn_username_means_full_pc(self):
        data = _input(vpn_username="jdoe", device_serial_number="NA")
        assert determine_device_type(data) == DeviceType.FULL_PC
        assert get_device_type_reason(data) == "Full PC: Has VPN credentials for remote access"

    def test_vpn_password_alone_means_full_pc(self):
        data = _input(vpn_username="NA", vpn_password="secret", rdp_username="term1")
        assert determine_device_type(data) == DeviceType.FULL_PC

    def test_intune_without_serial_or_vpn_means_full_pc(self):
        data = _input(device_serial_number="NA", vpn_username="NA", has_intune_device=True)
        assert determine_device_type(data) == DeviceType.FULL_PC
        assert get_device_type_reason(data).startswith("Full PC: Device managed in Intune")

    def test_rdp_only_without_serial_is_thin_client(self):
        data = _input(device_serial_number=None, vpn_username=None,
                      has_intune_device=False, rdp_username="term1")
        assert determine_device_type(data) == DeviceType.THIN_CLIENT
        assert get_device_type_reason(data) == "Thin Client: No device serial and no VPN credentials"

    def test_no_signals_at_all_is_thin_client(self):
        assert determine_device_type(_input()) == DeviceType.THIN_CLIENT

    def test_serial_with_intune_is_full_pc(self):
        data = _input(device_serial_number="SN1", rdp_username="term1", has_intune_device=True)
        assert determine_device_type(data) == DeviceType.FULL_PC

    def test_serial_with_rdp_only_is_thin_client(self):
        data = _input(device_serial_number="SN1", rdp_password="pw")
        assert determine_device_type(data) == DeviceType.THIN_CLIENT
        assert get_device_type_reason(data) == \
            "Thin Client: Has RDP credentials but no VPN (terminal access only)"

    def test_serial_alone_is_full_pc(self):
        data = _input(device_serial_number="SN1", rdp_username="N/A")
        assert determine_device_type(data) == DeviceType.FULL_PC
        assert get_device_type_reason(data) == \
            "Full PC: Has device serial number and no thin client indicators"


class TestExhaustive:
    def test_never_unknown(self):
        for data in _all_inputs():
            assert determine_device_type(data) != DeviceType.UNKNOWN

    def test_reason_never_contradicts_classification(self):
        for data in _all_inputs():
            assert reason_device_type(get_device_type_reason(data)) == determine_device_type(data)

    def test_valid_vpn_always_full_pc_without_override(self):
        for data in _all_inputs():
            if data.device_type in ("thin_client", "full_pc"):
                continue
            if data.vpn_username == "value" or data.vpn_password == "pw":
                assert determine_device_type(data) == DeviceType.FULL_PC

    def test_classify_pairs_type_and_reason(self):
        data = _input(vpn_username="jdoe")
        result = classify(data)
        assert result.device_type == determine_device_type(data)
        assert result.reason == get_device_type_reason(data)


class TestReasonMapping:
    def test_unknown_reason_maps_to_unknown(self):
        assert reason_device_type("Unknown: Insufficient information to determine device type") == \
            DeviceType.UNKNOWN

    def test_unrecognized_text_maps_to_unknown(self):
        assert reason_device_type("something else") == DeviceType.UNKNOWN
