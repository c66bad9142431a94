"""
API tests: authentication, the report lifecycle end to end, comments,
notifications and the internal outbox drain.
"""
from unittest.mock import patch

from app.models.db_models import NotificationOutboxDB, OutboxStatus
from app.routers import scheduler
from app.services.reporting.errors import StaleState


def asr(**overrides):
    body = {"reportType": "asr", "flightNumber": "AA1234", "description": "Tail strike on landing"}
    body.update(overrides)
    return body


# =============================================================================
# TEST: AUTH
# =============================================================================

class TestAuth:

    def test_register_login_me(self, client):
        response = client.post("/auth/register", json={
            "email": "fo@skyways.aero",
            "username": "fo",
            "password": "longenough",
            "role": "first_officer",
        })
        assert response.status_code == 201
        assert response.json()["role"] == "first_officer"

        login = client.post("/auth/login", json={"email": "fo@skyways.aero", "password": "longenough"})
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "fo@skyways.aero"

    def test_cannot_self_register_as_admin(self, client):
        response = client.post("/auth/register", json={
            "email": "x@skyways.aero", "username": "x", "password": "longenough", "role": "admin",
        })
        assert response.status_code == 422

    def test_duplicate_email(self, client, captain):
        response = client.post("/auth/register", json={
            "email": captain.email, "username": "another", "password": "longenough",
        })
        assert response.status_code == 400

    def test_wrong_password(self, client, captain):
        response = client.post("/auth/login", json={"email": captain.email, "password": "wrong-password"})
        assert response.status_code == 401

    def test_login_with_seeded_password(self, client, captain):
        response = client.post("/auth/login", json={"email": captain.email, "password": "password123"})
        assert response.status_code == 200

    def test_missing_token(self, client):
        assert client.get("/reports").status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/reports", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


# =============================================================================
# TEST: REPORT LIFECYCLE
# =============================================================================

class TestReportLifecycle:

    def test_review_scenario(self, client, auth, admin, captain, first_officer):
        created = client.post("/reports", json=asr(), headers=auth(captain))
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "submitted"
        assert body["reportType"] == "asr"
        report_id = body["id"]

        reviewed = client.patch(f"/reports/{report_id}/status", json={"status": "in_review"}, headers=auth(admin))
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "in_review"
        assert reviewed.json()["flightNumber"] == "AA1234"

        fresh = client.post("/reports", json=asr(flightNumber="AA5678"), headers=auth(captain)).json()
        skipped = client.patch(f"/reports/{fresh['id']}/status", json={"status": "closed"}, headers=auth(admin))
        assert skipped.status_code == 400
        assert skipped.json()["detail"]["validTransitions"] == ["in_review", "rejected"]

        client.post("/reports", json=asr(flightNumber="ZZ1"), headers=auth(first_officer))

        own = client.get("/reports", headers=auth(captain)).json()
        assert {r["submittedBy"] for r in own} == {captain.id}
        assert len(own) == 2

        everything = client.get("/reports", headers=auth(admin)).json()
        assert len(everything) == 3
        assert "AA1234" in {r["flightNumber"] for r in everything}

    def test_missing_required_field(self, client, auth, captain):
        response = client.post("/reports", json={"reportType": "ncr", "department": "Ops"}, headers=auth(captain))
        assert response.status_code == 400
        assert response.json()["detail"]["fields"] == ["nonconformityType"]

    def test_unknown_kind(self, client, auth, captain):
        response = client.post("/reports", json={"reportType": "xyz"}, headers=auth(captain))
        assert response.status_code == 400

    def test_crew_cannot_change_status(self, client, auth, captain):
        report_id = client.post("/reports", json=asr(), headers=auth(captain)).json()["id"]
        response = client.patch(f"/reports/{report_id}/status", json={"status": "in_review"}, headers=auth(captain))
        assert response.status_code == 403

    def test_stale_state_is_conflict(self, client, auth, admin, captain):
        report_id = client.post("/reports", json=asr(), headers=auth(captain)).json()["id"]
        with patch("app.services.reporting.state_machine.ReportStatusMachine.transition") as transition:
            transition.side_effect = StaleState(report_id, "submitted")
            response = client.patch(f"/reports/{report_id}/status", json={"status": "in_review"}, headers=auth(admin))
        assert response.status_code == 409

    def test_detail_scope(self, client, auth, captain, first_officer):
        report_id = client.post("/reports", json=asr(), headers=auth(first_officer)).json()["id"]
        assert client.get(f"/reports/{report_id}", headers=auth(captain)).status_code == 404
        assert client.get(f"/reports/{report_id}", headers=auth(first_officer)).status_code == 200

    def test_filters(self, client, auth, admin, captain):
        client.post("/reports", json=asr(), headers=auth(captain))
        client.post("/reports", json={"reportType": "or", "location": "Gate 3"}, headers=auth(captain))

        only_or = client.get("/reports", params={"type": "or"}, headers=auth(admin)).json()
        assert [r["reportType"] for r in only_or] == ["or"]

        bad_status = client.get("/reports", params={"status": "approved"}, headers=auth(admin))
        assert bad_status.status_code == 400

    def test_stats_and_types(self, client, auth, admin, captain):
        client.post("/reports", json=asr(), headers=auth(captain))

        stats = client.get("/reports/stats", headers=auth(admin)).json()
        assert stats["total"] == 1
        assert stats["byType"]["asr"] == 1
        assert stats["byStatus"]["submitted"] == 1

        types = client.get("/reports/types", headers=auth(captain)).json()
        asr_type = next(t for t in types if t["code"] == "asr")
        assert {"name": "flightNumber", "required": True} in asr_type["fields"]

    def test_anonymous_report_hides_submitter(self, client, auth, admin, captain):
        client.post("/reports", json=asr(isAnonymous=True), headers=auth(captain))

        report = client.get("/reports", headers=auth(admin)).json()[0]

        assert report["submittedBy"] is None
        assert report["submitter"] == {"id": None, "displayName": "Anonymous"}
        assert captain.email not in str(report)


# =============================================================================
# TEST: COMMENTS AND NOTIFICATIONS
# =============================================================================

class TestCommentsAndNotifications:

    def test_comment_thread(self, client, auth, admin, captain):
        report_id = client.post("/reports", json=asr(), headers=auth(captain)).json()["id"]

        posted = client.post("/comments", json={"reportId": report_id, "content": "Which runway?"}, headers=auth(admin))
        assert posted.status_code == 201

        comments = client.get("/comments", params={"reportId": report_id}, headers=auth(captain)).json()
        assert [c["content"] for c in comments] == ["Which runway?"]

        detail = client.get(f"/reports/{report_id}", headers=auth(captain)).json()
        assert len(detail["comments"]) == 1

    def test_anonymous_submitter_comment_hidden(self, client, auth, admin, captain):
        report_id = client.post("/reports", json=asr(isAnonymous=True), headers=auth(captain)).json()["id"]
        posted = client.post("/comments", json={"reportId": report_id, "content": "Also the flaps"}, headers=auth(captain))
        assert posted.status_code == 201
        assert posted.json()["userId"] == captain.id

        listed = client.get("/comments", params={"reportId": report_id}, headers=auth(admin))
        detail = client.get(f"/reports/{report_id}", headers=auth(admin))

        assert listed.status_code == 200
        assert listed.json()[0]["userId"] is None
        assert listed.json()[0]["user"] == {"id": None, "displayName": "Anonymous"}
        for body in (listed.text, detail.text):
            assert captain.email not in body
            assert captain.id not in body

    def test_anonymous_flag_as_text_rejected(self, client, auth, captain):
        response = client.post("/reports", json=asr(isAnonymous="false"), headers=auth(captain))
        assert response.status_code == 400

    def test_empty_comment(self, client, auth, captain):
        report_id = client.post("/reports", json=asr(), headers=auth(captain)).json()["id"]
        response = client.post("/comments", json={"reportId": report_id, "content": "  "}, headers=auth(captain))
        assert response.status_code == 400

    def test_notification_inbox(self, client, auth, admin, captain):
        client.post("/reports", json=asr(), headers=auth(captain))
        client.post("/reports", json=asr(), headers=auth(captain))

        inbox = client.get("/notifications", headers=auth(admin)).json()
        assert len(inbox) == 2
        assert client.get("/notifications", headers=auth(captain)).json() == []
        assert client.get("/notifications/unread-count", headers=auth(admin)).json() == {"count": 2}

        read = client.patch(f"/notifications/{inbox[0]['id']}/read", headers=auth(admin))
        assert read.json()["isRead"] is True

        assert client.patch("/notifications/mark-all-read", headers=auth(admin)).json()["count"] == 1
        assert client.patch("/notifications/mark-all-read", headers=auth(admin)).json()["count"] == 0
        assert client.get("/notifications/unread-count", headers=auth(admin)).json() == {"count": 0}

        assert client.delete(f"/notifications/{inbox[0]['id']}", headers=auth(captain)).status_code == 404
        assert client.delete(f"/notifications/{inbox[0]['id']}", headers=auth(admin)).status_code == 200
        assert client.delete("/notifications", headers=auth(admin)).json()["count"] == 1

    def test_status_change_notifies_submitter(self, client, auth, admin, captain):
        report_id = client.post("/reports", json=asr(), headers=auth(captain)).json()["id"]
        client.patch(f"/reports/{report_id}/status", json={"status": "rejected"}, headers=auth(admin))

        inbox = client.get("/notifications", headers=auth(captain)).json()
        assert [(n["title"], n["type"], n["relatedReportId"]) for n in inbox] == [
            ("Report Rejected", "error", report_id),
        ]


# =============================================================================
# TEST: ADMIN AND INTERNAL ENDPOINTS
# =============================================================================

class TestAdmin:

    def test_admin_creates_admin(self, client, auth, admin):
        response = client.post("/admin/users", json={
            "email": "ops@skyways.aero", "username": "ops", "password": "longenough", "role": "admin",
        }, headers=auth(admin))
        assert response.status_code == 201

        users = client.get("/admin/users", params={"role": "admin"}, headers=auth(admin)).json()
        assert users["total"] == 2

    def test_crew_forbidden(self, client, auth, captain):
        assert client.get("/admin/users", headers=auth(captain)).status_code == 403

    def test_update_user(self, client, auth, admin, captain):
        response = client.put(f"/admin/users/{captain.id}", json={
            "first_name": "Renamed", "role": "first_officer",
        }, headers=auth(admin))

        assert response.status_code == 200
        assert response.json()["first_name"] == "Renamed"
        assert response.json()["role"] == "first_officer"
        assert response.json()["last_name"] == "Tester"

    def test_update_email_conflict(self, client, auth, admin, captain):
        response = client.put(f"/admin/users/{captain.id}", json={"email": admin.email}, headers=auth(admin))
        assert response.status_code == 409

    def test_update_invalid_role(self, client, auth, admin, captain):
        response = client.put(f"/admin/users/{captain.id}", json={"role": "dispatcher"}, headers=auth(admin))
        assert response.status_code == 422

    def test_update_unknown_user(self, client, auth, admin):
        assert client.put("/admin/users/missing", json={}, headers=auth(admin)).status_code == 404

    def test_reset_password(self, client, auth, admin, captain):
        response = client.post(
            f"/admin/users/{captain.id}/reset-password",
            json={"new_password": "brand-new-secret"},
            headers=auth(admin),
        )
        assert response.status_code == 200

        old = client.post("/auth/login", json={"email": captain.email, "password": "password123"})
        new = client.post("/auth/login", json={"email": captain.email, "password": "brand-new-secret"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_reset_password_too_short(self, client, auth, admin, captain):
        response = client.post(
            f"/admin/users/{captain.id}/reset-password", json={"new_password": "short"}, headers=auth(admin),
        )
        assert response.status_code == 422

    def test_delete_user(self, client, auth, admin, first_officer):
        email = first_officer.email
        response = client.delete(f"/admin/users/{first_officer.id}", headers=auth(admin))

        assert response.status_code == 200
        emails = [u["email"] for u in client.get("/admin/users", headers=auth(admin)).json()["users"]]
        assert email not in emails

    def test_delete_self_refused(self, client, auth, admin):
        assert client.delete(f"/admin/users/{admin.id}", headers=auth(admin)).status_code == 400

    def test_delete_user_with_reports_refused(self, client, auth, admin, captain):
        client.post("/reports", json=asr(), headers=auth(captain))
        assert client.delete(f"/admin/users/{captain.id}", headers=auth(admin)).status_code == 409
        assert client.get("/reports", headers=auth(admin)).json()[0]["submittedBy"] == captain.id

    def test_crew_cannot_manage_users(self, client, auth, captain, first_officer):
        assert client.put(f"/admin/users/{first_officer.id}", json={"role": "admin"}, headers=auth(captain)).status_code == 403
        assert client.delete(f"/admin/users/{first_officer.id}", headers=auth(captain)).status_code == 403
        reset = client.post(
            f"/admin/users/{first_officer.id}/reset-password", json={"new_password": "longenough"}, headers=auth(captain),
        )
        assert reset.status_code == 403


class TestInternalDrain:

    def test_requires_key(self, client):
        assert client.post("/internal/notifications/drain", headers={"X-Internal-Key": "wrong"}).status_code == 403

    def test_drains_pending(self, client, db, auth, admin, captain):
        with patch(
            "app.services.notifications.fanout.NotificationFanout.notify_report_created",
            side_effect=RuntimeError("offline"),
        ):
            client.post("/reports", json=asr(), headers=auth(captain))
        assert db.query(NotificationOutboxDB).one().status == OutboxStatus.PENDING.value

        response = client.post(
            "/internal/notifications/drain",
            headers={"X-Internal-Key": scheduler.INTERNAL_API_KEY},
        )

        assert response.json() == {"delivered": 1, "failed": 0}
        assert client.get("/notifications/unread-count", headers=auth(admin)).json() == {"count": 1}
