# =============================================================================
# utils/csv_utils.py - CSV and Excel utilities
# =============================================================================

import csv
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
import logging

import pandas as pd

EXCEL_EXTENSIONS = {'.xlsx', '.xls'}


class CSVHandler:
    """Utilities for reading and writing tabular files"""

    @staticmethod
    def read_csv(file_path: str, encoding: str = 'utf-8-sig',
                 delimiter: str = ',') -> Tuple[List[Dict[str, Any]], List[str]]:
        """Read CSV file and return list of dictionaries plus headers"""
        logger = logging.getLogger(__name__)

        try:
            with open(file_path, 'r', newline='', encoding=encoding) as file:
                dict_reader = csv.DictReader(file, delimiter=delimiter)
                headers = list(dict_reader.fieldnames or [])
                data = list(dict_reader)

            logger.info(f"CSV Headers: {headers[:10]}...")
            logger.info(f"Successfully read {len(data)} records from {file_path}")
            return data, headers

        except FileNotFoundError:
            logger.error(f"Input file {file_path} not found")
            raise
        except Exception as e:
            logger.error(f"Error reading CSV: {e}")
            raise

    @staticmethod
    def read_excel(file_path: str, sheet_name: Optional[str] = None) -> Tuple[List[Dict[str, Any]], List[str]]:
        """Read an Excel sheet as strings; blank cells become ''"""
        logger = logging.getLogger(__name__)

        try:
            frame = pd.read_excel(file_path, sheet_name=sheet_name or 0, dtype=str)
            frame = frame.dropna(how='all').fillna('')
            frame.columns = [str(column).strip() for column in frame.columns]

            headers = list(frame.columns)
            data = frame.to_dict(orient='records')
            logger.info(f"Successfully read {len(data)} records from {file_path}")
            return data, headers

        except FileNotFoundError:
            logger.error(f"Input file {file_path} not found")
            raise
        except Exception as e:
            logger.error(f"Error reading Excel file: {e}")
            raise

    @staticmethod
    def read_table(file_path: str, sheet_name: Optional[str] = None) -> Tuple[List[Dict[str, Any]], List[str]]:
        """Dispatch on extension: Excel workbooks or CSV"""
        if Path(file_path).suffix.lower() in EXCEL_EXTENSIONS:
            return CSVHandler.read_excel(file_path, sheet_name)
        return CSVHandler.read_csv(file_path)

    @staticmethod
    def normalize_headers(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Trim and lower-case header names, stripping stray BOMs"""
        normalized = []
        for row in data:
            normalized.append({
                str(key).strip().lstrip('\ufeff').lower(): value
                for key, value in row.items() if key is not None
            })
        return normalized

    @staticmethod
    def write_csv(data: List[Dict[str, Any]], output_path: str,
                  fieldnames: Optional[List[str]] = None) -> None:
        """Write data to CSV file"""
        logger = logging.getLogger(__name__)

        if not data:
            logger.warning("No data to write")
            return

        if fieldnames is None:
            fieldnames = list(data[0].keys())

        try:
            with open(output_path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=fieldnames, extrasaction='ignore')
                writer.writeheader()
                writer.writerows(data)

            logger.info(f"Successfully wrote {len(data)} records to {output_path}")

        except Exception as e:
            logger.error(f"Error writing CSV: {e}")
            raise
