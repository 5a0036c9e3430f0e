"""Tests for passwords, session tokens and the authorization guard."""

from types import SimpleNamespace

import pytest

from marketplace.auth import (
    Actor,
    Capability,
    Relation,
    create_session_token,
    decode_session_token,
    hash_password,
    relation_to_offer,
    require_capability,
    require_offer_party,
    verify_password,
)
from marketplace.auth.guard import capabilities_for
from marketplace.errors import Forbidden


def make_offer(buyer_id: str, seller_id: str):
    return SimpleNamespace(
        seller_id=seller_id,
        product_request=SimpleNamespace(user_id=buyer_id),
    )


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("secret123")

        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("secret123", "not-a-bcrypt-hash")


class TestSessionTokens:
    def test_round_trip(self):
        token = create_session_token("user-1", "a@example.com", "buyer")

        payload = decode_session_token(token)

        assert payload["sub"] == "user-1"
        assert payload["email"] == "a@example.com"
        assert payload["role"] == "buyer"

    def test_tampered_token(self):
        token = create_session_token("user-1", "a@example.com")

        assert decode_session_token(token + "x") is None

    def test_garbage_token(self):
        assert decode_session_token("not.a.token") is None


class TestCapabilities:
    def test_buyer_capabilities(self):
        caps = capabilities_for("buyer")

        assert Capability.CREATE_REQUEST in caps
        assert Capability.RESPOND_TO_OFFER in caps
        assert Capability.SUBMIT_OFFER not in caps

    def test_seller_capabilities(self):
        assert capabilities_for("seller") == frozenset({Capability.SUBMIT_OFFER})

    @pytest.mark.parametrize("role", [None, "", "superuser"])
    def test_unknown_role_grants_nothing(self, role):
        assert capabilities_for(role) == frozenset()

    def test_require_capability(self):
        seller = Actor(id="s", email="s@example.com", role="seller", capabilities=capabilities_for("seller"))

        require_capability(seller, Capability.SUBMIT_OFFER)
        with pytest.raises(Forbidden) as exc_info:
            require_capability(seller, Capability.CREATE_REQUEST, "Only buyers can create requests")
        assert exc_info.value.message == "Only buyers can create requests"


class TestOfferRelation:
    def test_relations(self):
        offer = make_offer(buyer_id="b", seller_id="s")

        assert relation_to_offer(Actor(id="b", email="b@x.io"), offer) is Relation.BUYER
        assert relation_to_offer(Actor(id="s", email="s@x.io"), offer) is Relation.SELLER
        assert relation_to_offer(Actor(id="u", email="u@x.io"), offer) is Relation.NONE

    def test_unrelated_actor_is_forbidden(self):
        offer = make_offer(buyer_id="b", seller_id="s")

        with pytest.raises(Forbidden):
            require_offer_party(Actor(id="u", email="u@x.io"), offer)
