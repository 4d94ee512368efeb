"""
contactsync: tenant-scoped contact management for a messaging CRM.
"""

__version__ = "0.1.0"
