# =============================================================================
# processors/device_classification.py - Thin client / full PC classification
# =============================================================================

from typing import List, Dict, Any, Optional

from core.ad_client import ActiveDirectoryClient
from core.base_processor import BaseRecordProcessor
from core.device_type import classify
from core.models import ClassificationStats, DeviceClassificationInput, DeviceType


class DeviceClassificationProcessor(BaseRecordProcessor):
    """Classifies each user/device row of an inventory or import sheet"""

    # Column mappings
    EMAIL_COLUMN = 'email'
    SERIAL_COLUMN = 'device_serial_number'
    VPN_USERNAME_COLUMN = 'vpn_username'
    VPN_PASSWORD_COLUMN = 'vpn_password'
    RDP_USERNAME_COLUMN = 'rdp_username'
    RDP_PASSWORD_COLUMN = 'rdp_password'
    INTUNE_COLUMN = 'has_intune_device'
    DEVICE_TYPE_COLUMN = 'device_type'

    INPUT_COLUMNS = [
        EMAIL_COLUMN, SERIAL_COLUMN, VPN_USERNAME_COLUMN, VPN_PASSWORD_COLUMN,
        RDP_USERNAME_COLUMN, RDP_PASSWORD_COLUMN, INTUNE_COLUMN, DEVICE_TYPE_COLUMN
    ]

    def __init__(self, ad_client: Optional[ActiveDirectoryClient] = None):
        super().__init__()
        self.ad_client = ad_client
        self.stats = ClassificationStats()

    def should_skip_row(self, row: Dict[str, Any]) -> bool:
        """Skip rows with no identifying or classifying data at all"""
        return not any(self.cell(row, column) for column in self.INPUT_COLUMNS)

    def build_input(self, row: Dict[str, Any]) -> DeviceClassificationInput:
        """Map a sheet row onto classifier signals"""
        return DeviceClassificationInput(
            device_serial_number=self.optional_cell(row, self.SERIAL_COLUMN),
            vpn_username=self.optional_cell(row, self.VPN_USERNAME_COLUMN),
            vpn_password=self.optional_cell(row, self.VPN_PASSWORD_COLUMN),
            rdp_username=self.optional_cell(row, self.RDP_USERNAME_COLUMN),
            rdp_password=self.optional_cell(row, self.RDP_PASSWORD_COLUMN),
            has_intune_device=self.resolve_intune_flag(row),
            device_type=self.optional_cell(row, self.DEVICE_TYPE_COLUMN)
        )

    def resolve_intune_flag(self, row: Dict[str, Any]) -> bool:
        """Use the sheet's flag when present, else ask the directory"""
        flag = self.parse_flag(row.get(self.INTUNE_COLUMN))
        if flag is not None:
            return flag

        email = self.cell(row, self.EMAIL_COLUMN)
        if not self.ad_client or not email:
            return False

        try:
            return self.ad_client.has_managed_device_for_email(email)
        except Exception as e:
            self.logger.error(f"Error checking managed device for {email}: {e}")
            return False

    def process_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.stats = ClassificationStats(total_records=len(rows))
        output_rows = []

        for row in rows:
            if self.should_skip_row(row):
                self.stats.skipped_records += 1
                continue

            result = classify(self.build_input(row))
            counts = self.stats.device_type_counts
            counts[result.device_type] = counts.get(result.device_type, 0) + 1

            output_row = dict(row)
            output_row['computed_device_type'] = result.device_type.value
            output_row['device_type_reason'] = result.reason
            output_rows.append(output_row)

        return output_rows

    def get_output_fieldnames(self) -> List[str]:
        """Input columns in sheet order followed by the classification"""
        fieldnames = list(self.headers) or list(self.INPUT_COLUMNS)
        return fieldnames + ['computed_device_type', 'device_type_reason']

    def calculate_stats(self) -> ClassificationStats:
        return self.stats

    def log_statistics(self, stats: ClassificationStats) -> None:
        type_counts = {device_type.value: count for device_type, count in stats.device_type_counts.items()}
        self.logger.info(f"Device type summary: {type_counts}")
        self.logger.info(
            f"Classified {stats.classified_records}/{stats.total_records} rows "
            f"({stats.share_of(DeviceType.THIN_CLIENT):.1f}% thin clients, "
            f"{stats.share_of(DeviceType.FULL_PC):.1f}% full PCs)"
        )
