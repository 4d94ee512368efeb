"""
Contact management: storage, validation, import and change events.
"""

from crm.contacts.models import Contact, ContactCustomField, ImportPolicy, ImportState

__all__ = ["Contact", "ContactCustomField", "ImportPolicy", "ImportState"]
