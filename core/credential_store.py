# =============================================================================
# core/credential_store.py - VPN/RDP credential store client
# =============================================================================

import logging
from typing import Any, Dict, List, Optional

import requests

from core.capability_cache import CapabilityCache
from core.models import CredentialRecord, ServiceType

DECRYPT_RPC = 'get_decrypted_credentials'
CREDENTIALS_TABLE = 'vpn_rdp_credentials'

# PostgreSQL undefined_function / PostgREST function not found
FUNCTION_NOT_FOUND_CODES = {'42883', 'PGRST202'}
# PostgreSQL insufficient_privilege
PERMISSION_DENIED_CODE = '42501'

# Shared across clients so the RPC is probed once per process
decrypt_rpc_cache = CapabilityCache(DECRYPT_RPC)


class CredentialStoreError(Exception):
    """Raised when credentials cannot be fetched from the store"""


class CredentialStoreClient:
    """PostgREST client for the VPN/RDP credential table with RPC fallback"""

    def __init__(self, base_url: str, api_key: str, access_token: Optional[str] = None,
                 rpc_cache: Optional[CapabilityCache] = None, timeout: float = 30):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.access_token = access_token or api_key
        self.rpc_cache = rpc_cache or decrypt_rpc_cache
        self.timeout = timeout
        self.session: Optional[requests.Session] = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    def connect(self) -> None:
        """Open an HTTP session carrying the API key headers"""
        self.session = requests.Session()
        self.session.headers.update({
            'apikey': self.api_key,
            'Authorization': f"Bearer {self.access_token}",
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })
        self.logger.info(f"Opened credential store session for {self.base_url}")

    def disconnect(self) -> None:
        """Close the HTTP session"""
        if self.session:
            self.session.close()
            self.session = None
            self.logger.info("Closed credential store session")

    def fetch_credentials(self, service_type: Optional[ServiceType] = None) -> List[CredentialRecord]:
        """
        Fetch credentials, preferring the decrypting RPC when it exists.

        Args:
            service_type: Optional VPN/RDP filter

        Returns:
            List of CredentialRecord ordered by username
        """
        service_value = service_type.value if service_type else None

        if self.rpc_cache.get(self._probe_decrypt_rpc):
            rows = self._call_decrypt_rpc(service_value)
            if rows is not None:
                return self._to_records(rows)

        params = {'select': '*', 'order': 'username'}
        if service_value:
            params['service_type'] = f"eq.{service_value}"
        return self._to_records(self._query_table(params))

    def fetch_credentials_with_email(self) -> List[CredentialRecord]:
        """Fetch only credentials carrying an email address"""
        if self.rpc_cache.get(self._probe_decrypt_rpc):
            rows = self._call_decrypt_rpc(None)
            if rows is not None:
                return [record for record in self._to_records(rows) if record.email]

        params = {'select': '*', 'email': 'not.is.null', 'order': 'username'}
        return [record for record in self._to_records(self._query_table(params)) if record.email]

    def _require_session(self) -> requests.Session:
        if not self.session:
            raise ConnectionError("Not connected to the credential store")
        return self.session

    def _post_rpc(self, service_value: Optional[str]) -> requests.Response:
        session = self._require_session()
        return session.post(
            f"{self.base_url}/rest/v1/rpc/{DECRYPT_RPC}",
            json={'p_service_type': service_value},
            timeout=self.timeout
        )

    def _probe_decrypt_rpc(self) -> bool:
        """Check whether the decrypting RPC exists and is callable"""
        try:
            response = self._post_rpc(None)
        except requests.RequestException as e:
            self.logger.debug(f"{DECRYPT_RPC} probe failed: {e}")
            return False

        if response.ok:
            return True

        code = self._error_code(response)
        if code in FUNCTION_NOT_FOUND_CODES:
            self.logger.debug(f"{DECRYPT_RPC} not installed ({code})")
        elif code == PERMISSION_DENIED_CODE:
            self.logger.debug(f"{DECRYPT_RPC} exists but access is denied")
        else:
            self.logger.debug(f"{DECRYPT_RPC} probe returned {response.status_code} ({code})")
        return False

    def _call_decrypt_rpc(self, service_value: Optional[str]) -> Optional[List[Dict[str, Any]]]:
        """Call the RPC; None means fall back to the table"""
        try:
            response = self._post_rpc(service_value)
        except requests.RequestException as e:
            self.logger.warning(f"{DECRYPT_RPC} call failed, falling back to direct query: {e}")
            return None

        if response.ok:
            rows = response.json()
            if rows is None:
                self.logger.warning(f"{DECRYPT_RPC} returned no data, falling back to direct query")
            return rows

        if self._error_code(response) == PERMISSION_DENIED_CODE:
            self.logger.debug(f"{DECRYPT_RPC}: Permission denied, falling back to direct query")
        else:
            self.logger.warning(f"{DECRYPT_RPC} returned {response.status_code}, falling back to direct query")
        return None

    def _query_table(self, params: Dict[str, str]) -> List[Dict[str, Any]]:
        session = self._require_session()
        try:
            response = session.get(
                f"{self.base_url}/rest/v1/{CREDENTIALS_TABLE}",
                params=params,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            self.logger.error(f"Error querying {CREDENTIALS_TABLE}: {e}")
            raise CredentialStoreError(f"Failed to fetch credentials: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            self.logger.error(f"Error querying {CREDENTIALS_TABLE}: {message}")
            raise CredentialStoreError(message)

        return response.json() or []

    def _to_records(self, rows: List[Dict[str, Any]]) -> List[CredentialRecord]:
        records = []
        for row in rows:
            try:
                records.append(CredentialRecord.from_dict(row))
            except ValueError:
                self.logger.warning(
                    f"Skipping credential {row.get('id')} with unsupported service type {row.get('service_type')!r}"
                )
        self.logger.info(f"Fetched {len(records)} credentials")
        return records

    @staticmethod
    def _error_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _error_code(self, response: requests.Response) -> str:
        return str(self._error_body(response).get('code', '') or '')

    def _error_message(self, response: requests.Response) -> str:
        body = self._error_body(response)
        return str(body.get('message') or f"HTTP {response.status_code}")
