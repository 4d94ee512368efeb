"""
Tenant resolution for HTTP requests.

The authentication layer in front of this service forwards the caller's
company in the X-Company-Id header. Every contact operation receives the value
returned here as an explicit argument.
"""

from typing import Annotated

from fastapi import Header


async def get_company_id(
    x_company_id: Annotated[int, Header(alias="X-Company-Id", gt=0)],
) -> int:
    """Return the tenant (company) id of the current request."""
    return x_company_id
