"""
tests/test_processors.py
Sheet-in, sheet-out workflows for classification, consolidation and import.
"""

import csv
from unittest.mock import MagicMock

import pandas as pd
import pytest

from core.models import CredentialRecord, DeviceType, ServiceType
from processors.credential_consolidation import CredentialConsolidationProcessor
from processors.device_classification import DeviceClassificationProcessor
from processors.user_import import UserImportProcessor


def _write_csv(path, header, rows):
    with open(path, "w", newline="", encoding="utf-8") as file:
        writer = csv.writer(file)
        writer.writerow(header)
        writer.writerows(rows)
    return str(path)


def _read_csv(path):
    with open(path, newline="", encoding="utf-8") as file:
        return list(csv.DictReader(file))


class TestDeviceClassificationProcessor:
    HEADER = ["Email", "Device_Serial_Number", "VPN_Username", "RDP_Username", "Has_Intune_Device", "Device_Type"]

    def test_classifies_every_row(self, tmp_path):
        input_csv = _write_csv(tmp_path / "in.csv", self.HEADER, [
            ["a@x.com", "NA", "jdoe", "", "", ""],
            ["b@x.com", "NA", "NA", "", "yes", ""],
            ["c@x.com", "", "", "term1", "no", ""],
            ["d@x.com", "SN1", "", "term2", "", "full_pc"],
            ["", "", "", "", "", ""],
        ])
        output_csv = str(tmp_path / "out.csv")

        stats = DeviceClassificationProcessor().process(input_csv, output_csv)

        rows = _read_csv(output_csv)
        assert [row["computed_device_type"] for row in rows] == ["full_pc", "full_pc", "thin_client", "full_pc"]
        assert rows[0]["device_type_reason"] == "Full PC: Has VPN credentials for remote access"
        assert rows[3]["device_type_reason"] == "Explicitly set as full_pc"
        assert "email" in rows[0]
        assert stats.total_records == 5
        assert stats.skipped_records == 1
        assert stats.device_type_counts[DeviceType.FULL_PC] == 3
        assert stats.device_type_counts[DeviceType.THIN_CLIENT] == 1

    def test_padded_override_is_not_authoritative(self, tmp_path):
        input_csv = _write_csv(tmp_path / "in.csv", self.HEADER, [
            ["a@x.com", "", "", "term1", "", " full_pc "],
        ])
        output_csv = str(tmp_path / "out.csv")

        DeviceClassificationProcessor().process(input_csv, output_csv)

        rows = _read_csv(output_csv)
        assert rows[0]["computed_device_type"] == "thin_client"
        assert not rows[0]["device_type_reason"].startswith("Explicitly")

    def test_directory_supplies_intune_flag_when_column_missing(self, tmp_path):
        input_csv = _write_csv(tmp_path / "in.csv", ["email", "device_serial_number", "vpn_username"], [
            ["a@x.com", "", ""],
        ])
        output_csv = str(tmp_path / "out.csv")
        ad_client = MagicMock()
        ad_client.has_managed_device_for_email.return_value = True

        DeviceClassificationProcessor(ad_client).process(input_csv, output_csv)

        rows = _read_csv(output_csv)
        assert rows[0]["computed_device_type"] == "full_pc"
        ad_client.has_managed_device_for_email.assert_called_once_with("a@x.com")

    def test_directory_errors_degrade_to_no_intune(self, tmp_path):
        input_csv = _write_csv(tmp_path / "in.csv", ["email", "rdp_username"], [["a@x.com", "term1"]])
        output_csv = str(tmp_path / "out.csv")
        ad_client = MagicMock()
        ad_client.has_managed_device_for_email.side_effect = ConnectionError("not connected")

        DeviceClassificationProcessor(ad_client).process(input_csv, output_csv)

        assert _read_csv(output_csv)[0]["computed_device_type"] == "thin_client"

    def test_reads_excel_sheets(self, tmp_path):
        pytest.importorskip("openpyxl")
        input_xlsx = str(tmp_path / "in.xlsx")
        pd.DataFrame([
            {"email": "a@x.com", "device_serial_number": "SN1", "rdp_username": None},
        ]).to_excel(input_xlsx, index=False)
        output_csv = str(tmp_path / "out.csv")

        DeviceClassificationProcessor().process(input_xlsx, output_csv)

        rows = _read_csv(output_csv)
        assert rows[0]["computed_device_type"] == "full_pc"
        assert rows[0]["device_type_reason"] == "Full PC: Has device serial number and no thin client indicators"


class TestCredentialConsolidationProcessor:
    HEADER = ["id", "username", "password", "service_type", "email", "notes", "created_at", "updated_at"]

    def test_consolidates_export(self, tmp_path):
        input_csv = _write_csv(tmp_path / "creds.csv", self.HEADER, [
            ["1", "jdoe_vpn", "***ENCRYPTED***", "VPN", "jdoe@x.com", "", "2024-02-01T00:00:00Z", "2024-02-01T00:00:00Z"],
            ["2", "jdoe_rdp", "pw", "RDP", "JDoe@x.com ", "", "2024-01-01T00:00:00Z", "2024-03-01T00:00:00Z"],
            ["3", "shared", "pw", "RDP", "", "", "2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z"],
            ["4", "m365", "pw", "M365", "jdoe@x.com", "", "2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z"],
        ])
        output_csv = str(tmp_path / "out.csv")

        stats = CredentialConsolidationProcessor().process(input_csv, output_csv)

        rows = _read_csv(output_csv)
        assert len(rows) == 1
        row = rows[0]
        assert row["id"] == "1"
        assert row["credentials_summary"] == "1 VPN + 1 RDP"
        assert row["vpn_usernames"] == "jdoe_vpn"
        assert row["rdp_usernames"] == "jdoe_rdp"
        assert row["vpn_passwords"] == "••••••••"
        assert row["created_at"] == "2024-01-01T00:00:00Z"
        assert row["updated_at"] == "2024-03-01T00:00:00Z"
        assert stats.total_records == 3
        assert stats.records_without_email == 1
        assert stats.consolidated_users == 1
        assert stats.users_with_both == 1

    def test_export_records_with_directory_enrichment(self, tmp_path):
        ad_client = MagicMock()
        ad_client.query_user_by_email.return_value = {
            "full_name": "Jane Doe", "department": "IT", "title": "Engineer", "is_active": True,
        }
        records = [CredentialRecord(
            id="1", username="jane", password="pw", service_type=ServiceType.VPN,
            created_at="2024-01-01", updated_at="2024-01-01", email="jane@x.com",
        )]
        output_csv = str(tmp_path / "out.csv")

        stats = CredentialConsolidationProcessor(ad_client).export_records(records, output_csv)

        row = _read_csv(output_csv)[0]
        assert row["full_name"] == "Jane Doe"
        assert row["department"] == "IT"
        assert row["is_active"] == "True"
        assert stats.consolidated_users == 1


class TestUserImportProcessor:
    HEADER = [" Email ", "Device_Serial_Number", "Display_Name", "VPN_Username"]

    def test_validation_errors_and_valid_rows(self, tmp_path):
        input_csv = _write_csv(tmp_path / "import.csv", self.HEADER, [
            ["John@Corp.example", "SN1", "John", "jdoe_vpn"],
            ["", "SN2", "No Email", ""],
            ["not-an-email", "", "", ""],
            ["jane@other.example", "", "Jane", ""],
        ])
        output_csv = str(tmp_path / "valid.csv")
        errors_csv = str(tmp_path / "errors.csv")

        processor = UserImportProcessor("corp.example")
        preview = processor.process(input_csv, output_csv)
        processor.write_errors(errors_csv)

        assert preview.total_rows == 4
        assert [row["email"] for row in preview.valid_rows] == ["john@corp.example"]
        assert [(e.row, e.message) for e in preview.errors] == [
            (3, "Email is required"),
            (4, "Invalid email format"),
            (5, "Email must use @corp.example domain"),
        ]
        assert _read_csv(output_csv)[0]["device_serial_number"] == "SN1"
        assert len(_read_csv(errors_csv)) == 3

    def test_any_domain_when_unconfigured(self):
        preview = UserImportProcessor().validate_rows([{"email": "x@anywhere.org"}])
        assert len(preview.valid_rows) == 1
        assert preview.errors == []
