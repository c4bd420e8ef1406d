"""
listing_backend/test_api_flow.py

End-to-end HTTP tests through FastAPI's TestClient.

Covers:
1. Register / login / me
2. Broker verification gate on listing creation (pending -> 403, verified -> 201)
3. Listing ownership, views and featured toggling
4. Messages and conversations
5. Visit requests

Run:
    pytest listing_backend/test_api_flow.py -v
"""

import pytest

TEST_PASSWORD = "secret123"  # password set by the make_account fixture

NEW_LISTING = {
    "title": "Lake facing 3BHK",
    "description": "Bright corner unit",
    "propertyType": "residential",
    "listingType": "sale",
    "price": 4500000,
    "city": "Bengaluru",
    "bedrooms": 3,
    "bathrooms": 2,
    "area": 1450,
    "facilities": ["parkingSlot", "gym"],
}


class TestAuthEndpoints:
    """Registration and login."""

    def test_register_customer(self, client):
        response = client.post("/api/auth/register", json={
            "name": "Cara", "email": "Cara@Example.com", "password": "secret123",
        })
        assert response.status_code == 201, response.json()
        data = response.json()
        assert data["success"] is True
        assert data["token"]
        assert data["user"]["email"] == "cara@example.com"
        assert data["user"]["role"] == "customer"
        assert "passwordHash" not in data["user"]

    def test_register_broker_starts_pending(self, client):
        response = client.post("/api/auth/register", json={
            "name": "Bo", "email": "bo@example.com", "password": "secret123", "role": "broker",
        })
        assert response.status_code == 201
        assert response.json()["user"]["brokerProfile"]["verificationStatus"] == "pending"

    def test_register_admin_is_refused(self, client):
        response = client.post("/api/auth/register", json={
            "name": "Eve", "email": "eve@example.com", "password": "secret123", "role": "admin",
        })
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_duplicate_email_conflicts(self, client, make_account):
        make_account(email="taken@example.com")
        response = client.post("/api/auth/register", json={
            "name": "Dup", "email": "taken@example.com", "password": "secret123",
        })
        assert response.status_code == 409

    def test_login_and_me(self, client, make_account):
        make_account(email="lee@example.com")
        response = client.post("/api/auth/login", json={"email": "lee@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 200, response.json()
        token = response.json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "lee@example.com"
        assert me.json()["user"]["lastLogin"] is not None

    def test_bad_password(self, client, make_account):
        make_account(email="lee@example.com")
        response = client.post("/api/auth/login", json={"email": "lee@example.com", "password": "wrong"})
        assert response.status_code == 401

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == 401
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["success"] is False


class TestVerificationGate:
    """A broker can only create listings once an admin verifies them."""

    def test_pending_broker_then_verified(self, client, make_account):
        register = client.post("/api/auth/register", json={
            "name": "Priya", "email": "priya@example.com", "password": "secret123", "role": "broker",
        })
        broker_headers = {"Authorization": f"Bearer {register.json()['token']}"}
        broker_id = register.json()["user"]["brokerProfile"]["id"]

        blocked = client.post("/api/properties", json=NEW_LISTING, headers=broker_headers)
        assert blocked.status_code == 403
        assert blocked.json()["verificationStatus"] == "pending"

        admin = make_account("admin")
        verified = client.put(
            f"/api/admin/brokers/{broker_id}/verify",
            json={"verificationStatus": "verified"},
            headers=admin["headers"],
        )
        assert verified.status_code == 200, verified.json()
        assert verified.json()["data"]["verificationStatus"] == "verified"
        assert verified.json()["data"]["verifiedBy"] == admin["id"]

        created = client.post("/api/properties", json=NEW_LISTING, headers=broker_headers)
        assert created.status_code == 201, created.json()
        listing = created.json()["property"]
        assert listing["facilities"]["parking_slot"] is True
        assert listing["facilities"]["wifi"] is False
        assert listing["broker"]["id"] == broker_id

    def test_rejected_broker_sees_reason(self, client, make_account):
        broker = make_account("broker", broker_status="rejected")
        response = client.post("/api/properties", json=NEW_LISTING, headers=broker["headers"])
        assert response.status_code == 403
        assert response.json()["verificationStatus"] == "rejected"
        assert response.json()["rejectionReason"] == "License document unreadable"

    def test_reject_without_reason(self, client, make_account):
        broker = make_account("broker")
        admin = make_account("admin")
        response = client.put(
            f"/api/admin/brokers/{broker['broker_id']}/verify",
            json={"verificationStatus": "rejected"},
            headers=admin["headers"],
        )
        assert response.status_code == 400

    def test_customer_cannot_create(self, client, make_account):
        customer = make_account()
        response = client.post("/api/properties", json=NEW_LISTING, headers=customer["headers"])
        assert response.status_code == 403

    def test_admin_routes_require_admin(self, client, make_account):
        broker = make_account("broker", broker_status="verified")
        assert client.get("/api/admin/stats", headers=broker["headers"]).status_code == 403
        assert client.get("/api/admin/stats").status_code == 401

    def test_profile_edit_returns_to_pending(self, client, make_account):
        broker = make_account("broker", broker_status="verified")
        response = client.put(
            "/api/brokers/complete-profile",
            json={"companyName": "Acme Realty", "yearsOfExperience": 4},
            headers=broker["headers"],
        )
        assert response.status_code == 200, response.json()
        assert response.json()["data"]["verificationStatus"] == "pending"
        assert response.json()["data"]["companyName"] == "Acme Realty"

        blocked = client.post("/api/properties", json=NEW_LISTING, headers=broker["headers"])
        assert blocked.status_code == 403

    def test_admin_stats(self, client, make_account):
        make_account("broker")
        make_account("broker", broker_status="verified")
        admin = make_account("admin")
        response = client.get("/api/admin/stats", headers=admin["headers"])
        assert response.status_code == 200
        assert response.json()["brokers"]["pending"] == 1
        assert response.json()["brokers"]["verified"] == 1
        assert response.json()["users"]["total"] == 3


class TestAdminBrokerManagement:
    """Featuring and removing broker profiles."""

    def test_featured_broker_leads_directory(self, client, make_account):
        older = make_account("broker", name="Older", broker_status="verified")
        make_account("broker", name="Newer", broker_status="verified")
        admin = make_account("admin")

        assert [b["name"] for b in client.get("/api/brokers").json()["data"]] == ["Newer", "Older"]

        response = client.put(f"/api/admin/brokers/{older['broker_id']}/featured",
                              json={"isFeatured": True}, headers=admin["headers"])
        assert response.status_code == 200, response.json()
        assert response.json()["data"]["isFeatured"] is True
        assert response.json()["message"] == "Broker set as featured"
        assert [b["name"] for b in client.get("/api/brokers").json()["data"]] == ["Older", "Newer"]

    def test_featuring_is_admin_only(self, client, make_account):
        broker = make_account("broker", broker_status="verified")
        url = f"/api/admin/brokers/{broker['broker_id']}/featured"
        assert client.put(url, json={"isFeatured": True}, headers=broker["headers"]).status_code == 403

    def test_feature_unknown_broker(self, client, make_account):
        admin = make_account("admin")
        response = client.put("/api/admin/brokers/ghost/featured", json={"isFeatured": True},
                              headers=admin["headers"])
        assert response.status_code == 404

    def test_delete_broker_removes_profile_and_listings(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        customer = make_account()
        admin = make_account("admin")
        listing_id = make_listing(broker["broker_id"])
        client.post(f"/api/properties/{listing_id}/schedule-visit",
                    json={"scheduledDate": "2024-07-01", "scheduledTime": "10:30"}, headers=customer["headers"])
        sent = client.post("/api/messages", json={"receiverId": broker["id"], "propertyId": listing_id,
                                                  "message": "Still available?"}, headers=customer["headers"])

        response = client.delete(f"/api/admin/brokers/{broker['broker_id']}", headers=admin["headers"])
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Broker deleted successfully"}

        assert client.get(f"/api/admin/brokers/{broker['broker_id']}", headers=admin["headers"]).status_code == 404
        assert client.get(f"/api/properties/{listing_id}").status_code == 404
        assert client.get("/api/visits/mine", headers=customer["headers"]).json()["count"] == 0
        assert client.get("/api/brokers/me", headers=broker["headers"]).status_code == 404

        # The account and its conversation survive
        assert client.get("/api/auth/me", headers=broker["headers"]).status_code == 200
        thread = client.get(f"/api/messages/user/{customer['id']}", headers=broker["headers"]).json()
        assert [m["id"] for m in thread["messages"]] == [sent.json()["data"]["id"]]
        assert thread["messages"][0]["propertyId"] is None

    def test_delete_unknown_broker(self, client, make_account):
        admin = make_account("admin")
        assert client.delete("/api/admin/brokers/ghost", headers=admin["headers"]).status_code == 404


class TestListingEndpoints:
    """Search, detail, ownership and featured."""

    def test_search_response_shape(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        for _ in range(3):
            make_listing(broker["broker_id"])
        response = client.get("/api/properties", params={"limit": "2"})
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["totalCount"] == 3
        assert data["currentPage"] == 1
        assert data["totalPages"] == 2

    def test_search_bad_number(self, client, engine):
        response = client.get("/api/properties", params={"minPrice": "lots"})
        assert response.status_code == 400
        assert response.json()["field"] == "minPrice"

    @pytest.mark.parametrize("name", ["page", "bedrooms", "bathrooms"])
    def test_search_oversized_integer_is_bad_request(self, client, engine, name):
        """Integers too large for storage are a 400, not an unhandled error."""
        response = client.get("/api/properties", params={name: "99999999999999999999"})
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["field"] == name

    def test_search_city_ignores_non_ascii_case(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        make_listing(broker["broker_id"], city="ZÜRICH")
        response = client.get("/api/properties", params={"city": "zürich"})
        assert response.json()["totalCount"] == 1

    def test_detail_counts_views(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        listing_id = make_listing(broker["broker_id"])
        client.get(f"/api/properties/{listing_id}")
        response = client.get(f"/api/properties/{listing_id}")
        assert response.json()["property"]["views"] == 2

    def test_detail_missing(self, client, engine):
        assert client.get("/api/properties/does-not-exist").status_code == 404

    def test_only_owner_updates(self, client, make_account, make_listing):
        owner = make_account("broker", broker_status="verified")
        other = make_account("broker", broker_status="verified")
        listing_id = make_listing(owner["broker_id"])

        denied = client.put(f"/api/properties/{listing_id}", json={"price": 1}, headers=other["headers"])
        assert denied.status_code == 403

        allowed = client.put(f"/api/properties/{listing_id}", json={"price": 199000}, headers=owner["headers"])
        assert allowed.status_code == 200
        assert allowed.json()["property"]["price"] == 199000

    def test_update_cannot_null_required_field(self, client, make_account, make_listing):
        owner = make_account("broker", broker_status="verified")
        listing_id = make_listing(owner["broker_id"])
        response = client.put(f"/api/properties/{listing_id}", json={"title": None}, headers=owner["headers"])
        assert response.status_code == 400

    def test_admin_deletes_any_listing(self, client, make_account, make_listing):
        owner = make_account("broker", broker_status="verified")
        admin = make_account("admin")
        listing_id = make_listing(owner["broker_id"])
        assert client.delete(f"/api/properties/{listing_id}", headers=admin["headers"]).status_code == 200
        assert client.get(f"/api/properties/{listing_id}").status_code == 404

    def test_my_properties_include_inactive(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        make_listing(broker["broker_id"], status="inactive")
        make_listing(broker["broker_id"])
        response = client.get("/api/properties/broker/my-properties", headers=broker["headers"])
        assert response.status_code == 200
        assert response.json()["totalCount"] == 2

    def test_featured_is_admin_only(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        admin = make_account("admin")
        listing_id = make_listing(broker["broker_id"])

        url = f"/api/properties/{listing_id}/featured"
        assert client.put(url, json={"isFeatured": True}, headers=broker["headers"]).status_code == 403
        response = client.put(url, json={"isFeatured": True}, headers=admin["headers"])
        assert response.status_code == 200
        assert response.json()["property"]["isFeatured"] is True


class TestMessagingAndVisits:
    def test_conversation_flow(self, client, make_account):
        alice = make_account(name="Alice")
        bob = make_account("broker", name="Bob", broker_status="verified")

        sent = client.post("/api/messages", json={"receiverId": bob["id"], "message": "Is it available?"},
                           headers=alice["headers"])
        assert sent.status_code == 201, sent.json()

        unread = client.get("/api/messages/unread-count", headers=bob["headers"])
        assert unread.json()["unreadCount"] == 1

        conversations = client.get("/api/messages/conversations", headers=bob["headers"]).json()["conversations"]
        assert len(conversations) == 1
        assert conversations[0]["counterpartId"] == alice["id"]
        assert conversations[0]["counterpartName"] == "Alice"
        assert conversations[0]["unreadCount"] == 1

        thread = client.get(f"/api/messages/user/{alice['id']}", headers=bob["headers"])
        assert [m["message"] for m in thread.json()["messages"]] == ["Is it available?"]
        assert client.get("/api/messages/unread-count", headers=bob["headers"]).json()["unreadCount"] == 0

    def test_mark_all_read_from_one_sender(self, client, make_account):
        alice, bob, carol = make_account(), make_account(), make_account()
        for text_body in ("one", "two"):
            client.post("/api/messages", json={"receiverId": bob["id"], "message": text_body},
                        headers=alice["headers"])
        client.post("/api/messages", json={"receiverId": bob["id"], "message": "three"}, headers=carol["headers"])

        response = client.patch(f"/api/messages/read-all/{alice['id']}", headers=bob["headers"])
        assert response.status_code == 200
        assert response.json()["markedCount"] == 2
        assert client.get("/api/messages/unread-count", headers=bob["headers"]).json()["unreadCount"] == 1

        again = client.patch(f"/api/messages/read-all/{alice['id']}", headers=bob["headers"])
        assert again.json()["markedCount"] == 0

    def test_property_messages_only_show_callers_own(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        alice, bob = make_account(), make_account()
        listing_id = make_listing(broker["broker_id"])
        other_listing_id = make_listing(broker["broker_id"])

        client.post("/api/messages", json={"receiverId": broker["id"], "propertyId": listing_id,
                                           "message": "alice asks"}, headers=alice["headers"])
        client.post("/api/messages", json={"receiverId": broker["id"], "propertyId": listing_id,
                                           "message": "bob asks"}, headers=bob["headers"])
        client.post("/api/messages", json={"receiverId": broker["id"], "propertyId": other_listing_id,
                                           "message": "alice elsewhere"}, headers=alice["headers"])
        client.post("/api/messages", json={"receiverId": alice["id"], "propertyId": listing_id,
                                           "message": "broker replies"}, headers=broker["headers"])

        url = f"/api/messages/property/{listing_id}"
        mine = client.get(url, headers=alice["headers"]).json()["messages"]
        assert [m["message"] for m in mine] == ["alice asks", "broker replies"]

        everyone = client.get(url, headers=broker["headers"]).json()["messages"]
        assert sorted(m["message"] for m in everyone) == ["alice asks", "bob asks", "broker replies"]

        assert client.get("/api/messages/property/ghost", headers=alice["headers"]).status_code == 404
        assert client.get(url).status_code == 401

    def test_message_to_unknown_user(self, client, make_account):
        alice = make_account()
        response = client.post("/api/messages", json={"receiverId": "ghost", "message": "hello"},
                               headers=alice["headers"])
        assert response.status_code == 404

    def test_stranger_cannot_delete_message(self, client, make_account):
        alice, bob, mallory = make_account(), make_account(), make_account()
        sent = client.post("/api/messages", json={"receiverId": bob["id"], "message": "hi"},
                           headers=alice["headers"]).json()
        message_id = sent["data"]["id"]
        assert client.delete(f"/api/messages/{message_id}", headers=mallory["headers"]).status_code == 404
        assert client.delete(f"/api/messages/{message_id}", headers=bob["headers"]).status_code == 200

    def test_schedule_visit(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        customer = make_account()
        listing_id = make_listing(broker["broker_id"])
        body = {"scheduledDate": "2024-07-01", "scheduledTime": "10:30", "message": "Morning works"}

        first = client.post(f"/api/properties/{listing_id}/schedule-visit", json=body, headers=customer["headers"])
        assert first.status_code == 201, first.json()
        visit_id = first.json()["data"]["id"]

        duplicate = client.post(f"/api/properties/{listing_id}/schedule-visit", json=body,
                                headers=customer["headers"])
        assert duplicate.status_code == 409

        listing = client.get(f"/api/properties/{listing_id}").json()["property"]
        assert listing["inquiries"] == 1

        incoming = client.get("/api/visits/incoming", headers=broker["headers"]).json()
        assert incoming["count"] == 1

        confirmed = client.put(f"/api/visits/{visit_id}/status", json={"status": "confirmed"},
                               headers=broker["headers"])
        assert confirmed.status_code == 200
        assert confirmed.json()["data"]["status"] == "confirmed"

        mine = client.get("/api/visits/mine", headers=customer["headers"]).json()
        assert mine["data"][0]["status"] == "confirmed"

    def test_customer_can_only_cancel(self, client, make_account, make_listing):
        broker = make_account("broker", broker_status="verified")
        customer = make_account()
        listing_id = make_listing(broker["broker_id"])
        visit = client.post(
            f"/api/properties/{listing_id}/schedule-visit",
            json={"scheduledDate": "2024-07-01", "scheduledTime": "10:30"},
            headers=customer["headers"],
        ).json()["data"]

        url = f"/api/visits/{visit['id']}/status"
        assert client.put(url, json={"status": "confirmed"}, headers=customer["headers"]).status_code == 403
        assert client.put(url, json={"status": "cancelled"}, headers=customer["headers"]).status_code == 200
