"""
Messaging network integration: identity resolution of phone numbers.
"""

from crm.messaging.interface import (
    CanonicalIdentity,
    IdentityLookupError,
    IdentityResolver,
    NumberNotRegisteredError,
)

__all__ = [
    "CanonicalIdentity",
    "IdentityLookupError",
    "IdentityResolver",
    "NumberNotRegisteredError",
]
