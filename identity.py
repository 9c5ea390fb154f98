"""
Acting principal for a request.

Authentication lives in an external identity service; by the time a request
reaches the engine it carries the resolved user and/or company id in
headers. This module only turns those headers into an :class:`Actor`.
"""

from typing import Optional

from fastapi import Header
from pydantic import BaseModel

from errors import AuthorizationFailure


class Actor(BaseModel):
    user_id: Optional[int] = None
    company_id: Optional[int] = None


async def get_actor(
    x_user_id: Optional[int] = Header(default=None),
    x_company_id: Optional[int] = Header(default=None),
) -> Actor:
    return Actor(user_id=x_user_id, company_id=x_company_id)


def require_company(actor: Actor) -> int:
    if actor.company_id is None:
        raise AuthorizationFailure("This operation is reserved for venue accounts")
    return actor.company_id


def require_user(actor: Actor) -> int:
    if actor.user_id is None:
        raise AuthorizationFailure("Sign in to continue")
    return actor.user_id
