# =============================================================================
# processors/credential_consolidation.py - One row per user across VPN/RDP
# =============================================================================

from typing import List, Dict, Any, Optional

from core.ad_client import ActiveDirectoryClient
from core.base_processor import BaseRecordProcessor
from core.consolidation import consolidate_users_by_email, get_credentials_summary
from core.credentials import display_password
from core.models import ConsolidatedUser, ConsolidationStats, CredentialRecord
from utils.csv_utils import CSVHandler


class CredentialConsolidationProcessor(BaseRecordProcessor):
    """Consolidates a VPN/RDP credential export by email address"""

    def __init__(self, ad_client: Optional[ActiveDirectoryClient] = None):
        super().__init__()
        self.ad_client = ad_client
        self.stats = ConsolidationStats()
        self.users: List[ConsolidatedUser] = []

    def should_skip_row(self, row: Dict[str, Any]) -> bool:
        """Skip rows that are not VPN/RDP credentials"""
        return self.cell(row, 'service_type').upper() not in ('VPN', 'RDP')

    def apply_filters(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Drop rows with an unsupported service type"""
        original_count = len(rows)
        filtered = [row for row in rows if not self.should_skip_row(row)]
        self.logger.info(f"Filtered to {len(filtered)} VPN/RDP records from {original_count} total records")
        return filtered

    def process_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        records = []
        for row in rows:
            try:
                records.append(CredentialRecord.from_dict(row))
            except ValueError:
                self.logger.warning(f"Skipping credential {row.get('id')} with unsupported service type")
        return self.process_records(records)

    def process_records(self, records: List[CredentialRecord]) -> List[Dict[str, Any]]:
        """Consolidate already-parsed credential records into output rows"""
        self.users = consolidate_users_by_email(records)

        self.stats = ConsolidationStats(
            total_records=len(records),
            records_without_email=sum(1 for record in records if not (record.email or '').strip()),
            consolidated_users=len(self.users),
            users_with_both=sum(1 for user in self.users if user.has_vpn and user.has_rdp)
        )

        return [self.user_to_dict(user) for user in self.users]

    def export_records(self, records: List[CredentialRecord], output_path: str) -> ConsolidationStats:
        """Consolidate records fetched from the store and write them out"""
        output_rows = self.process_records(records)
        CSVHandler.write_csv(output_rows, output_path, self.get_output_fieldnames())
        stats = self.calculate_stats()
        self.log_statistics(stats)
        return stats

    def user_to_dict(self, user: ConsolidatedUser) -> Dict[str, Any]:
        """Convert ConsolidatedUser to dictionary for CSV output"""
        base_dict = {
            'id': user.id,
            'email': user.email,
            'credentials_summary': get_credentials_summary(user),
            'vpn_usernames': '; '.join(cred.username for cred in user.vpn_credentials),
            'rdp_usernames': '; '.join(cred.username for cred in user.rdp_credentials),
            'vpn_passwords': '; '.join(display_password(cred.password) for cred in user.vpn_credentials),
            'rdp_passwords': '; '.join(display_password(cred.password) for cred in user.rdp_credentials),
            'has_vpn': user.has_vpn,
            'has_rdp': user.has_rdp,
            'credential_count': len(user.all_credentials),
            'created_at': user.created_at,
            'updated_at': user.updated_at
        }
        base_dict.update(self.lookup_directory_data(user.email))
        return base_dict

    def lookup_directory_data(self, email: str) -> Dict[str, Any]:
        """Directory enrichment columns; blank without a directory client"""
        blank = {'full_name': '', 'department': '', 'title': '', 'is_active': ''}
        if not self.ad_client:
            return blank

        try:
            ad_data = self.ad_client.query_user_by_email(email)
        except Exception as e:
            self.logger.error(f"Error during directory lookup for {email}: {e}")
            return blank

        if not ad_data:
            return blank

        return {
            'full_name': ad_data.get('full_name', ''),
            'department': ad_data.get('department', ''),
            'title': ad_data.get('title', ''),
            'is_active': ad_data.get('is_active', False)
        }

    def get_output_fieldnames(self) -> List[str]:
        """Get fieldnames for consolidated CSV output"""
        return [
            'id', 'email', 'credentials_summary', 'vpn_usernames', 'rdp_usernames',
            'vpn_passwords', 'rdp_passwords', 'has_vpn', 'has_rdp', 'credential_count',
            'created_at', 'updated_at', 'full_name', 'department', 'title', 'is_active'
        ]

    def calculate_stats(self) -> ConsolidationStats:
        return self.stats

    def log_statistics(self, stats: ConsolidationStats) -> None:
        self.logger.info(
            f"Consolidated {stats.total_records - stats.records_without_email} credentials "
            f"into {stats.consolidated_users} users ({stats.merge_rate:.2f} per user)"
        )
        self.logger.info(f"Users with both VPN and RDP: {stats.users_with_both}")
        if stats.records_without_email:
            self.logger.warning(f"Skipped {stats.records_without_email} credentials without an email")
