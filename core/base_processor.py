# =============================================================================
# core/base_processor.py - Abstract base processor
# =============================================================================

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
import logging

from utils.csv_utils import CSVHandler


class BaseRecordProcessor(ABC):
    """Abstract base class for sheet-in, sheet-out processors"""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.headers: List[str] = []

    @abstractmethod
    def should_skip_row(self, row: Dict[str, Any]) -> bool:
        """Determine if row should be skipped"""
        pass

    @abstractmethod
    def process_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Turn normalized input rows into output rows"""
        pass

    @abstractmethod
    def get_output_fieldnames(self) -> List[str]:
        """Get fieldnames for CSV output"""
        pass

    @abstractmethod
    def calculate_stats(self) -> Any:
        """Statistics for the last processed batch"""
        pass

    @abstractmethod
    def log_statistics(self, stats: Any) -> None:
        """Log processing statistics"""
        pass

    def apply_filters(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Apply processor-specific filters to input rows"""
        # Default implementation - can be overridden
        return rows

    def load_rows(self, input_path: str, sheet_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """Read a CSV or Excel sheet with normalized header names"""
        data, headers = CSVHandler.read_table(input_path, sheet_name)
        self.headers = [str(header).strip().lower() for header in headers]
        return CSVHandler.normalize_headers(data)

    def process(self, input_path: str, output_path: str, apply_filters: bool = True,
                sheet_name: Optional[str] = None) -> Any:
        """Main processing workflow"""
        self.logger.info(f"Starting {self.__class__.__name__} processing workflow")

        try:
            rows = self.load_rows(input_path, sheet_name)
            self.logger.info(f"Read {len(rows)} records from {input_path}")

            if apply_filters:
                rows = self.apply_filters(rows)
                self.logger.info(f"After filtering: {len(rows)} records")

            output_rows = self.process_rows(rows)
            CSVHandler.write_csv(output_rows, output_path, self.get_output_fieldnames())

            stats = self.calculate_stats()
            self.log_statistics(stats)
            return stats

        except Exception as e:
            self.logger.error(f"Processing failed: {e}")
            raise

    @staticmethod
    def cell(row: Dict[str, Any], column: str) -> str:
        """Stripped string value of a cell; '' when missing"""
        value = row.get(column)
        if value is None:
            return ''
        return str(value).strip()

    @staticmethod
    def optional_cell(row: Dict[str, Any], column: str) -> Optional[str]:
        """Raw string value of a cell; None when missing or blank"""
        value = row.get(column)
        if value is None or str(value) == '':
            return None
        return str(value)

    @staticmethod
    def parse_flag(value: Any) -> Optional[bool]:
        """Interpret yes/no style spreadsheet flags; None when blank"""
        if value is None:
            return None
        text = str(value).strip().lower()
        if not text:
            return None
        return text in ('1', 'true', 'yes', 'y', 't', 'x')
