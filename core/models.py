# =============================================================================
# core/models.py - Unified data models
# =============================================================================

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum


class DeviceType(Enum):
    """Enumeration of device classifications"""
    THIN_CLIENT = "thin_client"
    FULL_PC = "full_pc"
    UNKNOWN = "unknown"


class ServiceType(Enum):
    """Remote access service a credential belongs to"""
    VPN = "VPN"
    RDP = "RDP"


@dataclass
class DeviceClassificationInput:
    """Signals available for one user/device pairing"""
    device_serial_number: Optional[str] = None
    vpn_username: Optional[str] = None
    vpn_password: Optional[str] = None
    rdp_username: Optional[str] = None
    rdp_password: Optional[str] = None
    has_intune_device: bool = False
    device_type: Optional[str] = None


@dataclass
class DeviceClassification:
    """Result of classifying one input"""
    device_type: DeviceType
    reason: str


@dataclass
class CredentialRecord:
    """A single VPN or RDP account"""
    id: str
    username: str
    password: str
    service_type: ServiceType
    created_at: str
    updated_at: str
    email: Optional[str] = None
    notes: Optional[str] = None
    tenant_id: Optional[str] = None

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "CredentialRecord":
        """Build a record from a store row or CSV row"""
        service = str(row.get('service_type', '') or '').strip().upper()
        return cls(
            id=str(row.get('id', '') or ''),
            username=str(row.get('username', '') or ''),
            password=str(row.get('password', '') or ''),
            service_type=ServiceType(service),
            created_at=str(row.get('created_at', '') or ''),
            updated_at=str(row.get('updated_at', '') or ''),
            email=row.get('email') or None,
            notes=row.get('notes') or None,
            tenant_id=row.get('tenant_id') or None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'username': self.username,
            'password': self.password,
            'service_type': self.service_type.value,
            'email': self.email,
            'notes': self.notes,
            'tenant_id': self.tenant_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }


@dataclass
class ConsolidatedUser:
    """One logical user built from every credential sharing an email"""
    id: str
    email: str
    created_at: str
    updated_at: str
    vpn_credentials: List[CredentialRecord] = field(default_factory=list)
    rdp_credentials: List[CredentialRecord] = field(default_factory=list)
    all_credentials: List[CredentialRecord] = field(default_factory=list)
    has_vpn: bool = False
    has_rdp: bool = False


@dataclass
class ClassificationStats:
    """Statistics for a device classification run"""
    total_records: int = 0
    skipped_records: int = 0
    device_type_counts: Dict[DeviceType, int] = field(default_factory=dict)

    @property
    def classified_records(self) -> int:
        return self.total_records - self.skipped_records

    def share_of(self, device_type: DeviceType) -> float:
        """Percentage of classified records with the given type"""
        if self.classified_records == 0:
            return 0.0
        return (self.device_type_counts.get(device_type, 0) / self.classified_records) * 100


@dataclass
class ConsolidationStats:
    """Statistics for a credential consolidation run"""
    total_records: int = 0
    records_without_email: int = 0
    consolidated_users: int = 0
    users_with_both: int = 0

    @property
    def merge_rate(self) -> float:
        """Average credentials per consolidated user"""
        if self.consolidated_users == 0:
            return 0.0
        return (self.total_records - self.records_without_email) / self.consolidated_users


@dataclass
class ImportRowError:
    """Validation failure for one import row"""
    row: int
    field: str
    message: str


@dataclass
class ImportPreview:
    """Outcome of validating an import sheet"""
    valid_rows: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[ImportRowError] = field(default_factory=list)
    total_rows: int = 0
