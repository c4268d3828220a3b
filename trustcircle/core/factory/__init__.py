"""
Factory modules for creating TrustCircle components.
"""

from trustcircle.core.factory.store_factory import TrustStoreFactory

__all__ = [
    "TrustStoreFactory",
]
