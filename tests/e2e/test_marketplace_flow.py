"""E2E tests for the request -> offer -> negotiation -> payment flow over HTTP."""

from unittest.mock import AsyncMock, patch

from marketplace.errors import ExternalServiceError


class TestMarketplaceFlowE2E:
    """A buyer, two sellers and an outsider working one request."""

    def test_single_acceptance_scenario(self, client, make_user, request_payload):
        """B creates R; S1 and S2 offer; S1 cannot offer twice; only one offer can be accepted."""
        buyer = make_user("Buyer")
        seller_one = make_user("SellerOne", role="seller")
        seller_two = make_user("SellerTwo", role="seller")
        outsider = make_user("Outsider", role="seller")

        response = client.post("/api/product-requests", json=request_payload, headers=buyer)
        assert response.status_code == 201
        request_id = response.json()["productRequest"]["id"]

        first = client.post(
            "/api/offers",
            json={"productRequestId": request_id, "price": 14500, "deliveryTime": 10, "message": "In stock"},
            headers=seller_one,
        )
        second = client.post(
            "/api/offers",
            json={"productRequestId": request_id, "price": 13900, "deliveryTime": 14},
            headers=seller_two,
        )
        assert first.status_code == 201
        assert second.status_code == 201
        offer_one = first.json()["offer"]["id"]
        offer_two = second.json()["offer"]["id"]

        # A second offer from the same seller conflicts regardless of its terms
        duplicate = client.post(
            "/api/offers",
            json={"productRequestId": request_id, "price": 12000, "deliveryTime": 3},
            headers=seller_one,
        )
        assert duplicate.status_code == 400
        assert duplicate.json()["error"] == "You have already made an offer for this request"

        received = client.get("/api/offers?role=buyer", headers=buyer).json()["offers"]
        assert {o["id"] for o in received} == {offer_one, offer_two}

        # Negotiation on S1's offer
        posted = client.post(
            "/api/negotiations",
            json={"offerId": offer_one, "message": "Can you do 14000?", "proposedPrice": 14000},
            headers=buyer,
        )
        assert posted.status_code == 201
        client.post(
            "/api/negotiations",
            json={"offerId": offer_one, "message": "14200 is our best", "proposedPrice": 14200},
            headers=seller_one,
        )

        empty = client.post(
            "/api/negotiations", json={"offerId": offer_one, "message": "   "}, headers=buyer
        )
        assert empty.status_code == 400

        thread = client.get(f"/api/negotiations?offerId={offer_one}", headers=seller_one)
        again = client.get(f"/api/negotiations?offerId={offer_one}", headers=seller_one)
        assert thread.json() == again.json()
        messages = thread.json()["negotiations"]
        assert [m["message"] for m in messages] == ["Can you do 14000?", "14200 is our best"]
        assert messages[0]["sender"]["name"] == "Buyer"

        forbidden = client.get(f"/api/negotiations?offerId={offer_one}", headers=outsider)
        assert forbidden.status_code == 403

        # The offer's own price is unchanged by proposals
        offer = client.get(f"/api/offers/{offer_one}", headers=buyer).json()["offer"]
        assert offer["price"] == 14500

        # The seller cannot answer their own offer
        self_accept = client.post(
            f"/api/offers/{offer_one}/respond", json={"status": "accepted"}, headers=seller_one
        )
        assert self_accept.status_code == 403

        accepted = client.post(
            f"/api/offers/{offer_one}/respond",
            json={"status": "accepted", "buyerResponse": "Agreed at 14500"},
            headers=buyer,
        )
        assert accepted.status_code == 200
        assert accepted.json()["offer"]["status"] == "accepted"
        assert accepted.json()["offer"]["respondedAt"] is not None

        late = client.post(
            f"/api/offers/{offer_two}/respond", json={"status": "accepted"}, headers=buyer
        )
        assert late.status_code == 409
        assert late.json()["error"] == "request already fulfilled"

        still_pending = client.get(f"/api/offers/{offer_two}", headers=seller_two).json()["offer"]
        assert still_pending["status"] == "pending"

        # Payment for the accepted offer
        payment = client.post("/api/payments", json={"offerId": offer_one}, headers=buyer)
        assert payment.status_code == 201
        payment_id = payment.json()["payment"]["id"]
        assert payment.json()["order"]["currentStatus"] == "placed"

        unpaid = client.post("/api/payments", json={"offerId": offer_two}, headers=buyer)
        assert unpaid.status_code == 409

        completed = client.post(f"/api/payments/{payment_id}/complete", headers=buyer)
        assert completed.status_code == 200
        assert completed.json()["payment"]["status"] == "completed"
        assert completed.json()["order"]["currentStatus"] == "processing"

        orders = client.get("/api/orders", headers=buyer).json()["orders"]
        assert len(orders) == 1
        assert orders[0]["totalAmount"] == 14500

        me = client.get("/api/user/me", headers=buyer).json()["user"]
        assert me["paymentCount"] == 1

    def test_withdrawn_offer_leaves_request_open(self, client, make_user, request_payload):
        buyer = make_user("Buyer")
        seller = make_user("Seller", role="seller")
        request_id = client.post(
            "/api/product-requests", json=request_payload, headers=buyer
        ).json()["productRequest"]["id"]
        offer_id = client.post(
            "/api/offers",
            json={"productRequestId": request_id, "price": 9000, "deliveryTime": 5},
            headers=seller,
        ).json()["offer"]["id"]

        by_buyer = client.post(f"/api/offers/{offer_id}/withdraw", headers=buyer)
        by_seller = client.post(f"/api/offers/{offer_id}/withdraw", headers=seller)
        respond_after = client.post(
            f"/api/offers/{offer_id}/respond", json={"status": "accepted"}, headers=buyer
        )

        assert by_buyer.status_code == 403
        assert by_seller.status_code == 200
        assert by_seller.json()["offer"]["status"] == "withdrawn"
        assert respond_after.status_code == 409

        explore = client.get("/api/product-requests/explore", headers=seller).json()["productRequests"]
        assert [r["id"] for r in explore] == [request_id]

    def test_ai_suggestion_goes_through_negotiation_endpoint(self, client, make_user, request_payload):
        """An AI suggestion is only advisory until posted as a regular message."""
        buyer = make_user("Buyer")
        seller = make_user("Seller", role="seller")
        request_id = client.post(
            "/api/product-requests", json=request_payload, headers=buyer
        ).json()["productRequest"]["id"]
        offer = client.post(
            "/api/offers",
            json={"productRequestId": request_id, "price": 10000, "deliveryTime": 5},
            headers=seller,
        ).json()["offer"]

        with patch(
            "marketplace.assistants.negotiation_coach.complete",
            new_callable=AsyncMock,
            side_effect=ExternalServiceError(),
        ):
            suggestion = client.post(
                "/api/ai/negotiate",
                json={"offer": offer, "userType": "buyer"},
                headers=buyer,
            ).json()["data"]

        assert suggestion["proposedPrice"] == 9000
        assert client.get(
            f"/api/negotiations?offerId={offer['id']}", headers=buyer
        ).json()["negotiations"] == []

        posted = client.post(
            "/api/negotiations",
            json={
                "offerId": offer["id"],
                "message": suggestion["message"],
                "proposedPrice": suggestion["proposedPrice"],
                "isAiGenerated": True,
            },
            headers=buyer,
        )

        assert posted.status_code == 201
        assert posted.json()["negotiation"]["isAiGenerated"] is True
