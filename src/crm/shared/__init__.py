"""
Shared infrastructure: configuration-backed database access, logging,
exceptions and tenant resolution.
"""
