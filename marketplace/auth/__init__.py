"""Authentication and authorization."""

from .guard import (
    Actor,
    Capability,
    Relation,
    ROLE_CAPABILITIES,
    get_current_actor,
    relation_to_offer,
    require_capability,
    require_offer_party,
)
from .passwords import hash_password, verify_password
from .sessions import create_session_token, decode_session_token

__all__ = [
    "Actor",
    "Capability",
    "Relation",
    "ROLE_CAPABILITIES",
    "get_current_actor",
    "relation_to_offer",
    "require_capability",
    "require_offer_party",
    "hash_password",
    "verify_password",
    "create_session_token",
    "decode_session_token",
]
