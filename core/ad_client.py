# =============================================================================
# core/ad_client.py - Active Directory client for user and device lookups
# =============================================================================

import logging
from typing import Dict, Any, Optional
from ldap3 import Server, Connection, ALL
from ldap3.utils.conv import escape_filter_chars


class ActiveDirectoryClient:
    """Active Directory client used to enrich users and detect managed devices"""

    USER_ATTRIBUTES = [
        'mail', 'displayName', 'department', 'userAccountControl',
        'sAMAccountName', 'title', 'distinguishedName'
    ]

    def __init__(self, server_url: str, username: str, password: str, base_dn: str):
        self.server_url = server_url
        self.username = username
        self.password = password
        self.base_dn = base_dn
        self.connection: Optional[Connection] = None
        self.logger = logging.getLogger(__name__)
        self._managed_device_cache: Dict[str, bool] = {}

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    def connect(self) -> bool:
        """Establish connection to Active Directory"""
        try:
            server = Server(self.server_url, get_info=ALL)
            self.connection = Connection(
                server,
                user=self.username,
                password=self.password,
                auto_bind=True
            )
            self.logger.info("Successfully connected to Active Directory")
            return True
        except Exception as e:
            self.logger.error(f"Failed to connect to AD: {e}")
            return False

    def disconnect(self) -> None:
        """Close Active Directory connection"""
        if self.connection:
            self.connection.unbind()
            self.connection = None
            self.logger.info("Disconnected from Active Directory")

    def query_user_by_email(self, email: str) -> Dict[str, Any]:
        """Query user by email address"""
        search_filter = f"(&(objectClass=user)(mail={escape_filter_chars(email.strip())}))"
        return self._query_user(search_filter, email)

    def has_managed_device(self, user_dn: str) -> bool:
        """Check whether any computer object is managed by the given user"""
        if not user_dn:
            return False
        if user_dn in self._managed_device_cache:
            return self._managed_device_cache[user_dn]

        if not self.connection:
            raise ConnectionError("Not connected to Active Directory")

        search_filter = f"(&(objectClass=computer)(managedBy={escape_filter_chars(user_dn)}))"
        try:
            self.connection.search(
                search_base=self.base_dn,
                search_filter=search_filter,
                attributes=['cn']
            )
            managed = bool(self.connection.entries)
        except Exception as e:
            self.logger.error(f"Error querying devices managed by {user_dn}: {e}")
            return False

        self.logger.debug(f"Managed device for {user_dn}: {managed}")
        self._managed_device_cache[user_dn] = managed
        return managed

    def has_managed_device_for_email(self, email: str) -> bool:
        """Resolve the user by email, then check for a managed device"""
        user = self.query_user_by_email(email) if email else {}
        return self.has_managed_device(user.get('distinguished_name', ''))

    def _query_user(self, search_filter: str, identifier: str) -> Dict[str, Any]:
        """Internal method to perform AD query"""
        if not self.connection:
            raise ConnectionError("Not connected to Active Directory")

        try:
            self.connection.search(
                search_base=self.base_dn,
                search_filter=search_filter,
                attributes=self.USER_ATTRIBUTES
            )

            if not self.connection.entries:
                self.logger.debug(f"User {identifier} not found in AD")
                return {}

            if len(self.connection.entries) > 1:
                self.logger.warning(f"Multiple users found for {identifier}, using first match")

            entry = self.connection.entries[0]
            result = {
                'email': str(entry.mail) if entry.mail else "",
                'full_name': str(entry.displayName) if entry.displayName else "",
                'department': str(entry.department) if entry.department else "",
                'title': str(entry.title) if entry.title else "",
                'is_active': self._is_account_active(
                    entry.userAccountControl.value if entry.userAccountControl else 0
                ),
                'samaccountname': str(entry.sAMAccountName) if entry.sAMAccountName else "",
                'distinguished_name': entry.entry_dn
            }
            self.logger.debug(f"Found user {identifier} in AD")
            return result

        except Exception as e:
            self.logger.error(f"Error querying user {identifier}: {e}")
            return {}

    def _is_account_active(self, user_account_control: int) -> bool:
        """Check if user account is active based on userAccountControl flags"""
        # 0x2 = ACCOUNTDISABLE flag
        return not bool(user_account_control & 0x2)
