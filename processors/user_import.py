# =============================================================================
# processors/user_import.py - Staff import sheet validation
# =============================================================================

import re
from typing import List, Dict, Any, Optional

from core.base_processor import BaseRecordProcessor
from core.models import ImportPreview, ImportRowError
from utils.csv_utils import CSVHandler

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class UserImportProcessor(BaseRecordProcessor):
    """Validates staff import sheets before they are loaded into the user list"""

    EMAIL_COLUMN = 'email'

    IMPORT_COLUMNS = [
        'email', 'device_serial_number', 'display_name', 'vpn_username',
        'rdp_username', 'job_title', 'department', 'branch', 'notes'
    ]

    def __init__(self, allowed_email_domain: str = ''):
        super().__init__()
        domain = (allowed_email_domain or '').strip().lower()
        if domain and not domain.startswith('@'):
            domain = '@' + domain
        self.allowed_email_domain = domain
        self.preview = ImportPreview()

    def should_skip_row(self, row: Dict[str, Any]) -> bool:
        """Skip fully blank lines"""
        return not any(self.cell(row, key) for key in row)

    def validate_row(self, row: Dict[str, Any], row_number: int) -> Optional[ImportRowError]:
        """First validation failure for a row, or None"""
        email = self.cell(row, self.EMAIL_COLUMN)

        if not email:
            return ImportRowError(row=row_number, field='email', message='Email is required')

        if not EMAIL_PATTERN.match(email):
            return ImportRowError(row=row_number, field='email', message='Invalid email format')

        if self.allowed_email_domain and not email.lower().endswith(self.allowed_email_domain):
            return ImportRowError(
                row=row_number, field='email',
                message=f"Email must use {self.allowed_email_domain} domain"
            )

        return None

    def validate_rows(self, rows: List[Dict[str, Any]]) -> ImportPreview:
        """Split rows into valid rows and per-row errors"""
        preview = ImportPreview(total_rows=len(rows))

        # Row 1 is the header
        for index, row in enumerate(rows):
            if self.should_skip_row(row):
                continue

            error = self.validate_row(row, index + 2)
            if error:
                preview.errors.append(error)
                continue

            clean_row = {column: self.cell(row, column) for column in self.IMPORT_COLUMNS}
            clean_row['email'] = clean_row['email'].lower()
            preview.valid_rows.append(clean_row)

        return preview

    def process_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.preview = self.validate_rows(rows)
        return self.preview.valid_rows

    def write_errors(self, errors_output: str) -> None:
        """Write validation errors to a CSV file"""
        error_rows = [
            {'row': error.row, 'field': error.field, 'message': error.message}
            for error in self.preview.errors
        ]
        CSVHandler.write_csv(error_rows, errors_output, ['row', 'field', 'message'])

    def get_output_fieldnames(self) -> List[str]:
        return list(self.IMPORT_COLUMNS)

    def calculate_stats(self) -> ImportPreview:
        return self.preview

    def log_statistics(self, stats: ImportPreview) -> None:
        self.logger.info(f"Validated {stats.total_rows} rows: {len(stats.valid_rows)} ready to import")
        if stats.errors:
            self.logger.warning(f"File validated with {len(stats.errors)} errors")
            for error in stats.errors[:10]:
                self.logger.warning(f"Row {error.row} ({error.field}): {error.message}")
