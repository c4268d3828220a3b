"""
Factory for creating trust store backends.
"""

from trustcircle.config import Config
from trustcircle.core.trust_store.base import TrustStore
from trustcircle.core.trust_store.sqlite_store import SQLiteTrustStore
from trustcircle.utils.exceptions import ConfigurationError


class TrustStoreFactory:
    """Factory for creating trust store backends from configuration."""

    @staticmethod
    def create(config: Config) -> TrustStore:
        """
        Create trust store from configuration.

        Args:
            config: Main configuration object

        Returns:
            Trust store instance

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.store.backend == "sqlite":
            return SQLiteTrustStore(
                db_path=config.store.db_path,
                busy_timeout=config.store.busy_timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported store backend: {config.store.backend}",
                context={"backend": config.store.backend},
            )
