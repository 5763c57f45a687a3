"""
Admin API tests: dashboard counts, staff listings, user management and
the security audit trail.
"""

from elibrary.models import PrintJob, SessionToken, User
from elibrary.permissions import Role
from elibrary.services import circulation_service

from conftest import auth_headers, headers_for


class TestDashboard:

    def test_counts(self, client, db_session, library_admin_headers, make_book, make_print_job, user, due_date):
        book = make_book()
        make_book(book_name="Second")
        make_print_job(user)
        circulation_service.issue_book(book.book_id, user.user_id, due_date, session=db_session)

        stats = client.get("/api/admin/dashboard", headers=library_admin_headers).get_json()["stats"]

        assert stats["books"] == 2
        assert stats["users"] == 2
        assert stats["activeIssues"] == 1
        assert stats["pendingPrints"] == 1
        assert stats["payments"] == 0

    def test_all_print_jobs_with_owner(self, client, library_admin_headers, make_print_job, user):
        job = make_print_job(user)

        items = client.get("/api/admin/print-jobs", headers=library_admin_headers).get_json()["items"]

        assert [i["print_id"] for i in items] == [job.print_id]
        assert items[0]["user"]["email"] == user.email


class TestUserManagement:

    def test_create_user_with_role(self, client, super_admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "Clerk", "email": "clerk@library.test", "password": "clerkpass", "role": Role.LIBRARY_ADMIN},
            headers=super_admin_headers,
        )

        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == Role.LIBRARY_ADMIN

    def test_create_rejects_unknown_role(self, client, super_admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "X", "email": "x@library.test", "password": "xpass1", "role": "JANITOR"},
            headers=super_admin_headers,
        )
        assert resp.status_code == 400

    def test_create_requires_password(self, client, super_admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "X", "email": "x@library.test", "role": Role.USER},
            headers=super_admin_headers,
        )
        assert resp.status_code == 400

    def test_duplicate_email(self, client, super_admin_headers, user):
        resp = client.post(
            "/api/admin/users",
            json={"name": "Dup", "email": user.email, "password": "duppass", "role": Role.USER},
            headers=super_admin_headers,
        )
        assert resp.status_code == 409

    def test_role_change_revokes_sessions(self, client, db_session, super_admin_headers, user):
        _session_headers = headers_for(user)

        resp = client.put(f"/api/admin/users/{user.user_id}", json={"role": Role.LIBRARY_ADMIN}, headers=super_admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["user"]["role"] == Role.LIBRARY_ADMIN
        assert client.get("/api/auth/user", headers=_session_headers).status_code == 401
        active = db_session.query(SessionToken).filter_by(user_id=user.user_id, is_revoked=False).count()
        assert active == 0

    def test_delete_user_without_history(self, client, db_session, super_admin_headers, user):
        headers_for(user)
        user_id = user.user_id

        resp = client.delete(f"/api/admin/users/{user_id}", headers=super_admin_headers)

        assert resp.status_code == 204
        assert db_session.get(User, user_id) is None
        assert db_session.query(SessionToken).filter_by(user_id=user_id).count() == 0

    def test_delete_user_with_history_conflicts(self, client, db_session, super_admin_headers, user, make_print_job):
        make_print_job(user)

        resp = client.delete(f"/api/admin/users/{user.user_id}", headers=super_admin_headers)

        assert resp.status_code == 409
        assert db_session.query(PrintJob).filter_by(user_id=user.user_id).count() == 1

    def test_delete_unknown_user(self, client, super_admin_headers):
        resp = client.delete("/api/admin/users/ghost", headers=super_admin_headers)
        assert resp.status_code == 404


class TestSecurityEvents:

    def test_lists_denials(self, client, super_admin_headers, user, user_headers):
        client.get("/api/admin/dashboard", headers=user_headers)

        resp = client.get(
            f"/api/admin/security-events?user_id={user.user_id}&event_type=PERMISSION_DENIED",
            headers=super_admin_headers,
        )

        assert resp.status_code == 200
        items = resp.get_json()["items"]
        assert len(items) == 1
        assert items[0]["action"] == "VIEW_DASHBOARD"

    def test_rejects_bad_limit(self, client, super_admin_headers):
        resp = client.get("/api/admin/security-events?limit=abc", headers=super_admin_headers)
        assert resp.status_code == 400

    def test_library_admin_forbidden(self, client, library_admin_headers):
        resp = client.get("/api/admin/security-events", headers=library_admin_headers)
        assert resp.status_code == 403

    def test_login_token_usable_for_admin(self, client, super_admin):
        from conftest import TEST_PASSWORD

        token = client.post(
            "/api/auth/login", json={"email": super_admin.email, "password": TEST_PASSWORD},
        ).get_json()["token"]

        assert client.get("/api/admin/users", headers=auth_headers(token)).status_code == 200
