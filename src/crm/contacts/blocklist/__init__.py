"""
Per-company blocklist of numbers that may not become contacts.
"""
