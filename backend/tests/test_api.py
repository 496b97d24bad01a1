"""
DeenVerse Backend: API Endpoint Tests
======================================

What:  HTTP-level tests through the FastAPI app (httpx + ASGITransport)
       against a per-test SQLite database.

What we test:
    ✅ Envelope shape and camelCase keys
    ✅ Auth: register, missing/invalid token (401), role guards (403), logout
    ✅ Student-teacher flow over HTTP: 201 connect, 400 duplicates and
       self-connect, 404 unverified, teacher accept/reject, 404 re-accept
    ✅ Featured, search and by-specialization teacher listings
    ✅ Teacher accept/reject leave peer requests alone (404)
    ✅ Peer follow / accept / unfollow endpoints, user directory filters
    ✅ Notifications inbox endpoints
    ✅ Validation errors and unknown routes use the error envelope
"""

import pytest
from uuid import uuid4


class TestHealthAndErrors:
    """Health check and global error rendering."""

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert "uptimeSeconds" in body

    @pytest.mark.asyncio
    async def test_unknown_route(self, test_client):
        response = await test_client.get("/api/nope")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Route not found"

    @pytest.mark.asyncio
    async def test_request_id_header(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, test_client):
        response = await test_client.get("/api/users/profile")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "unauthenticated"
        assert "requestId" in body

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, test_client):
        response = await test_client.get(
            "/api/users/profile", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_validation_error_is_400(self, test_client, student):
        response = await test_client.get(
            "/api/users/not-a-uuid", headers=student.headers
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["details"]["errors"]

    @pytest.mark.asyncio
    async def test_limit_above_maximum_is_400(self, test_client, student):
        response = await test_client.get(
            "/api/imaam", params={"limit": 1000}, headers=student.headers
        )
        assert response.status_code == 400


class TestAuthEndpoints:
    """Registration, profile and logout."""

    @pytest.mark.asyncio
    async def test_register_returns_account_and_token(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "Sara@Example.com", "displayName": "Sara", "role": "student"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["tokenType"] == "bearer"
        assert data["account"]["email"] == "sara@example.com"
        assert data["account"]["connectionsCount"] == 0

        profile = await test_client.get(
            "/api/users/profile", headers={"Authorization": f"Bearer {data['token']}"}
        )
        assert profile.status_code == 200
        assert profile.json()["data"]["displayName"] == "Sara"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, test_client):
        payload = {"email": "sara@example.com", "displayName": "Sara"}
        await test_client.post("/api/auth/register", json=payload)

        response = await test_client.post("/api/auth/register", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_register_admin_refused(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "root@example.com", "displayName": "Root", "role": "admin"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_operation"

    @pytest.mark.asyncio
    async def test_register_invalid_email(self, test_client):
        response = await test_client.post(
            "/api/auth/register", json={"email": "nope", "displayName": "Sara"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, test_client, student):
        response = await test_client.post("/api/auth/logout", headers=student.headers)
        assert response.status_code == 200

        response = await test_client.get("/api/users/profile", headers=student.headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_update_and_deactivate_profile(self, test_client, student):
        response = await test_client.put(
            "/api/users/profile",
            json={"bio": "Learning Arabic", "specializations": ["Arabic"]},
            headers=student.headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["bio"] == "Learning Arabic"

        response = await test_client.put(
            "/api/users/profile", json={"role": "admin"}, headers=student.headers
        )
        assert response.status_code == 400

        response = await test_client.delete("/api/users/profile", headers=student.headers)
        assert response.status_code == 200

        response = await test_client.get("/api/users/profile", headers=student.headers)
        assert response.status_code == 401


class TestImaamEndpoints:
    """Teacher directory and the student-teacher workflow over HTTP."""

    @pytest.mark.asyncio
    async def test_directory_lists_verified_teachers(
        self, test_client, student, teacher, unverified_teacher
    ):
        response = await test_client.get("/api/imaam", headers=student.headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [t["id"] for t in data["items"]] == [str(teacher.id)]
        assert data["pagination"] == {
            "currentPage": 1,
            "totalPages": 1,
            "totalItems": 1,
            "hasNext": False,
            "hasPrev": False,
        }

    @pytest.mark.asyncio
    async def test_connect_accept_flow(self, test_client, student, teacher):
        response = await test_client.post(
            f"/api/imaam/{teacher.id}/connect",
            json={"message": "teach me tajweed"},
            headers=student.headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Connection request sent successfully"
        connection = body["data"]
        assert connection["status"] == "pending"
        assert connection["type"] == "student-teacher"
        assert connection["requester"]["id"] == str(student.id)
        assert connection["recipient"]["id"] == str(teacher.id)

        inbox = await test_client.get("/api/imaam/connections/requests", headers=teacher.headers)
        assert inbox.status_code == 200
        assert [c["id"] for c in inbox.json()["data"]["items"]] == [connection["id"]]

        accepted = await test_client.post(
            f"/api/imaam/connections/{connection['id']}/accept", headers=teacher.headers
        )
        assert accepted.status_code == 200
        assert accepted.json()["data"]["status"] == "accepted"
        assert accepted.json()["data"]["acceptedAt"] is not None

        again = await test_client.post(
            f"/api/imaam/connections/{connection['id']}/accept", headers=teacher.headers
        )
        assert again.status_code == 404
        assert again.json()["message"] == "Connection request not found"

        profile = await test_client.get(f"/api/imaam/{teacher.id}", headers=student.headers)
        assert profile.json()["data"]["isConnected"] is True
        assert profile.json()["data"]["connectionsCount"] == 1

        notices = await test_client.get("/api/notifications", headers=student.headers)
        items = notices.json()["data"]["items"]
        assert len(items) == 1
        assert items[0]["type"] == "connection_accepted"
        assert items[0]["sender"]["id"] == str(teacher.id)
        assert items[0]["timeAgo"] == "Just now"

    @pytest.mark.asyncio
    async def test_connect_without_body(self, test_client, student, teacher):
        response = await test_client.post(
            f"/api/imaam/{teacher.id}/connect", headers=student.headers
        )
        assert response.status_code == 201
        assert response.json()["data"]["message"] == ""

    @pytest.mark.asyncio
    async def test_connect_twice_is_400(self, test_client, student, teacher):
        url = f"/api/imaam/{teacher.id}/connect"
        await test_client.post(url, headers=student.headers)

        response = await test_client.post(url, headers=student.headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Connection request already pending"

    @pytest.mark.asyncio
    async def test_connect_to_self_is_400(self, test_client, teacher):
        response = await test_client.post(
            f"/api/imaam/{teacher.id}/connect", headers=teacher.headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot connect to yourself"

    @pytest.mark.asyncio
    async def test_connect_to_unverified_is_404(self, test_client, student, unverified_teacher):
        response = await test_client.post(
            f"/api/imaam/{unverified_teacher.id}/connect", headers=student.headers
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Imaam not found or not verified"

    @pytest.mark.asyncio
    async def test_message_too_long_is_400(self, test_client, student, teacher):
        response = await test_client.post(
            f"/api/imaam/{teacher.id}/connect",
            json={"message": "x" * 201},
            headers=student.headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_teacher_routes_need_teacher_role(self, test_client, student):
        response = await test_client.get(
            "/api/imaam/connections/requests", headers=student.headers
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

        response = await test_client.post(
            f"/api/imaam/connections/{uuid4()}/accept", headers=student.headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reject(self, test_client, student, teacher):
        created = await test_client.post(
            f"/api/imaam/{teacher.id}/connect", headers=student.headers
        )
        connection_id = created.json()["data"]["id"]

        response = await test_client.post(
            f"/api/imaam/connections/{connection_id}/reject", headers=teacher.headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "rejected"

        profile = await test_client.get("/api/users/profile", headers=student.headers)
        assert profile.json()["data"]["connectionsCount"] == 0

    @pytest.mark.asyncio
    async def test_admin_verifies_teacher(self, test_client, admin, student, unverified_teacher):
        url = f"/api/users/{unverified_teacher.id}/verify"

        forbidden = await test_client.post(url, headers=student.headers)
        assert forbidden.status_code == 403

        response = await test_client.post(url, json={"verified": True}, headers=admin.headers)
        assert response.status_code == 200
        assert response.json()["data"]["isVerified"] is True

        profile = await test_client.get(
            f"/api/imaam/{unverified_teacher.id}", headers=student.headers
        )
        assert profile.status_code == 200
        assert profile.json()["data"]["isConnected"] is False

    @pytest.mark.asyncio
    async def test_featured_needs_a_connection(self, test_client, student, teacher):
        empty = await test_client.get("/api/imaam/featured", headers=student.headers)
        assert empty.status_code == 200
        assert empty.json()["data"] == []

        created = await test_client.post(
            f"/api/imaam/{teacher.id}/connect", headers=student.headers
        )
        await test_client.post(
            f"/api/imaam/connections/{created.json()['data']['id']}/accept",
            headers=teacher.headers,
        )

        featured = await test_client.get("/api/imaam/featured", headers=student.headers)
        data = featured.json()["data"]
        assert [t["id"] for t in data] == [str(teacher.id)]
        assert data[0]["connectionsCount"] == 1

        too_many = await test_client.get(
            "/api/imaam/featured", params={"limit": 1000}, headers=student.headers
        )
        assert too_many.status_code == 400

    @pytest.mark.asyncio
    async def test_search_and_specialization(self, test_client, student, teacher):
        updated = await test_client.put(
            "/api/users/profile",
            json={"specializations": ["Tajweed", "Fiqh"]},
            headers=teacher.headers,
        )
        assert updated.status_code == 200

        found = await test_client.get(
            "/api/imaam/search", params={"q": "tajw"}, headers=student.headers
        )
        assert found.status_code == 200
        assert [t["id"] for t in found.json()["data"]["items"]] == [str(teacher.id)]
        assert found.json()["data"]["items"][0]["specializations"] == ["Tajweed", "Fiqh"]

        listed = await test_client.get(
            "/api/imaam", params={"q": "FIQH"}, headers=student.headers
        )
        assert listed.json()["data"]["pagination"]["totalItems"] == 1

        by_name = await test_client.get(
            "/api/imaam/search", params={"q": "yusuf"}, headers=student.headers
        )
        assert by_name.json()["data"]["pagination"]["totalItems"] == 1

        nothing = await test_client.get(
            "/api/imaam/search", params={"q": "hadith"}, headers=student.headers
        )
        assert nothing.json()["data"]["items"] == []

        missing = await test_client.get("/api/imaam/search", headers=student.headers)
        assert missing.status_code == 400

        by_specialization = await test_client.get(
            "/api/imaam/specialization/fiqh", headers=student.headers
        )
        assert by_specialization.status_code == 200
        assert [t["id"] for t in by_specialization.json()["data"]["items"]] == [str(teacher.id)]

        other = await test_client.get(
            "/api/imaam/specialization/Arabic", headers=student.headers
        )
        assert other.json()["data"]["pagination"]["totalItems"] == 0

    @pytest.mark.asyncio
    async def test_teacher_actions_ignore_peer_requests(self, test_client, student, teacher):
        follow = await test_client.post(f"/api/users/{teacher.id}/follow", headers=student.headers)
        connection_id = follow.json()["data"]["id"]

        for action in ("accept", "reject"):
            response = await test_client.post(
                f"/api/imaam/connections/{connection_id}/{action}", headers=teacher.headers
            )
            assert response.status_code == 404
            assert response.json()["message"] == "Connection request not found"

        inbox = await test_client.get("/api/imaam/connections/requests", headers=teacher.headers)
        assert inbox.json()["data"]["items"] == []

        accepted = await test_client.post(
            f"/api/users/connections/{connection_id}/accept", headers=teacher.headers
        )
        assert accepted.status_code == 200
        assert accepted.json()["data"]["status"] == "accepted"
        assert accepted.json()["data"]["type"] == "peer"


class TestUserEndpoints:
    """Peer follow graph over HTTP."""

    @pytest.mark.asyncio
    async def test_follow_accept_unfollow(self, test_client, student, teacher):
        follow = await test_client.post(f"/api/users/{teacher.id}/follow", headers=student.headers)
        assert follow.status_code == 200
        assert follow.json()["data"]["type"] == "peer"
        connection_id = follow.json()["data"]["id"]

        inbox = await test_client.get(
            "/api/users/connections/requests", params={"type": "peer"}, headers=teacher.headers
        )
        assert inbox.json()["data"]["pagination"]["totalItems"] == 1

        accepted = await test_client.post(
            f"/api/users/connections/{connection_id}/accept", headers=teacher.headers
        )
        assert accepted.status_code == 200

        followers = await test_client.get(
            f"/api/users/{teacher.id}/followers", headers=student.headers
        )
        assert [f["id"] for f in followers.json()["data"]["items"]] == [str(student.id)]

        following = await test_client.get(
            f"/api/users/{student.id}/following", headers=student.headers
        )
        assert [f["id"] for f in following.json()["data"]["items"]] == [str(teacher.id)]

        unfollow = await test_client.delete(
            f"/api/users/{teacher.id}/unfollow", headers=student.headers
        )
        assert unfollow.status_code == 200
        assert unfollow.json()["message"] == "Unfollowed successfully"

        again = await test_client.delete(
            f"/api/users/{teacher.id}/unfollow", headers=student.headers
        )
        assert again.status_code == 404
        assert again.json()["message"] == "Not following this user"

        profile = await test_client.get(f"/api/users/{teacher.id}", headers=student.headers)
        assert profile.json()["data"]["connectionsCount"] == 0

    @pytest.mark.asyncio
    async def test_follow_self_is_400(self, test_client, student):
        response = await test_client.post(f"/api/users/{student.id}/follow", headers=student.headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot follow yourself"

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, test_client, student):
        response = await test_client.get(f"/api/users/{uuid4()}", headers=student.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_list_users(self, test_client, admin, student, teacher, unverified_teacher):
        response = await test_client.get("/api/users", headers=student.headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [u["id"] for u in data["items"]] == [
            str(unverified_teacher.id),
            str(teacher.id),
            str(student.id),
            str(admin.id),
        ]
        assert "email" not in data["items"][0]

        teachers = await test_client.get(
            "/api/users", params={"role": "teacher"}, headers=student.headers
        )
        assert [u["id"] for u in teachers.json()["data"]["items"]] == [
            str(unverified_teacher.id),
            str(teacher.id),
        ]

        searched = await test_client.get(
            "/api/users", params={"search": "AMINA"}, headers=student.headers
        )
        assert [u["id"] for u in searched.json()["data"]["items"]] == [str(admin.id)]

        combined = await test_client.get(
            "/api/users",
            params={"role": "student", "search": "imaam"},
            headers=student.headers,
        )
        assert combined.json()["data"]["pagination"]["totalItems"] == 0

        bad_role = await test_client.get(
            "/api/users", params={"role": "caliph"}, headers=student.headers
        )
        assert bad_role.status_code == 400

    @pytest.mark.asyncio
    async def test_deactivated_users_are_not_listed(self, test_client, student, teacher):
        await test_client.delete("/api/users/profile", headers=teacher.headers)

        response = await test_client.get("/api/users", headers=student.headers)
        assert [u["id"] for u in response.json()["data"]["items"]] == [str(student.id)]


class TestNotificationEndpoints:
    """Inbox counts and read markers over HTTP."""

    @pytest.mark.asyncio
    async def test_inbox_flow(self, test_client, student, teacher):
        await test_client.post(f"/api/imaam/{teacher.id}/connect", headers=student.headers)

        count = await test_client.get("/api/notifications/unread-count", headers=teacher.headers)
        assert count.json()["data"]["count"] == 1

        listing = await test_client.get(
            "/api/notifications", params={"unreadOnly": "true"}, headers=teacher.headers
        )
        data = listing.json()["data"]
        assert data["unreadCount"] == 1
        notification = data["items"][0]
        assert notification["type"] == "connection_request"
        assert notification["priority"] == "medium"
        assert notification["isRead"] is False

        not_mine = await test_client.patch(
            f"/api/notifications/{notification['id']}/read", headers=student.headers
        )
        assert not_mine.status_code == 404

        read = await test_client.patch(
            f"/api/notifications/{notification['id']}/read", headers=teacher.headers
        )
        assert read.status_code == 200
        assert read.json()["data"]["isRead"] is True
        assert read.json()["data"]["readAt"] is not None

        all_read = await test_client.patch("/api/notifications/read-all", headers=teacher.headers)
        assert all_read.json()["data"]["updated"] == 0

        count = await test_client.get("/api/notifications/unread-count", headers=teacher.headers)
        assert count.json()["data"]["count"] == 0
