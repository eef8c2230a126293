# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import os
from typing import Optional, List
from dotenv import load_dotenv


class Config:
    """Configuration management"""

    DEFAULT_RPC_CACHE_TTL = 3600

    def __init__(self):
        load_dotenv()

    @property
    def supabase_url(self) -> Optional[str]:
        return os.getenv("SUPABASE_URL")

    @property
    def supabase_key(self) -> Optional[str]:
        return os.getenv("SUPABASE_KEY")

    @property
    def ad_server(self) -> Optional[str]:
        return os.getenv("AD_SERVER")

    @property
    def ad_username(self) -> Optional[str]:
        return os.getenv("AD_USERNAME")

    @property
    def ad_password(self) -> Optional[str]:
        return os.getenv("AD_PASSWORD")

    @property
    def base_dn(self) -> Optional[str]:
        return os.getenv("BASE_DN")

    @property
    def allowed_email_domain(self) -> str:
        """Domain import emails must end with; empty allows any domain"""
        return os.getenv("ALLOWED_EMAIL_DOMAIN", "").strip().lower()

    @property
    def rpc_cache_ttl(self) -> float:
        value = os.getenv("RPC_CACHE_TTL_SECONDS")
        try:
            return float(value) if value else self.DEFAULT_RPC_CACHE_TTL
        except ValueError:
            return self.DEFAULT_RPC_CACHE_TTL

    def validate_store_config(self) -> bool:
        """Validate that the credential store configuration is present"""
        return all([self.supabase_url, self.supabase_key])

    def get_missing_store_vars(self) -> List[str]:
        """Get list of missing credential store variables"""
        vars_and_names = [
            (self.supabase_url, "SUPABASE_URL"),
            (self.supabase_key, "SUPABASE_KEY")
        ]
        return [name for var, name in vars_and_names if not var]

    def validate_ad_config(self) -> bool:
        """Validate that all required AD configuration is present"""
        required = [self.ad_server, self.ad_username, self.ad_password, self.base_dn]
        return all(required)

    def get_missing_ad_vars(self) -> List[str]:
        """Get list of missing AD configuration variables"""
        vars_and_names = [
            (self.ad_server, "AD_SERVER"),
            (self.ad_username, "AD_USERNAME"),
            (self.ad_password, "AD_PASSWORD"),
            (self.base_dn, "BASE_DN")
        ]
        return [name for var, name in vars_and_names if not var]
