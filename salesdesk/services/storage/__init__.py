"""
Storage module - Object storage uploads and signed URL expiry policies.
"""

from salesdesk.services.storage.expiry import AmzSignedUrlExpiry, NeverExpires, SignedUrlExpiry
from salesdesk.services.storage.object_store import ObjectStorage

__all__ = [
    "AmzSignedUrlExpiry",
    "NeverExpires",
    "ObjectStorage",
    "SignedUrlExpiry",
]
