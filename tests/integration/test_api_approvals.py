"""API tests for case and approval endpoints."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from quotedesk.core.approval import SendError, TemplateKind
from quotedesk.db.models import Case

from tests.factories import create_approval_route, create_case


def post_action(client: TestClient, case_key: str, tier: str, action: str, **extra):
    return client.post(f"/api/approvals/{case_key}/actions", json={"tier": tier, "action": action, **extra})


class TestHealth:
    def test_basic_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data


class TestCases:
    def test_register_case(self, client: TestClient, db_session):
        route = create_approval_route(db_session)

        response = client.post("/api/cases", json={
            "subject": "Boiler replacement",
            "customer_name": "Kato Industries",
            "staff_id": route["applicant"].id,
        })

        assert response.status_code == 201
        data = response.json()
        assert data["case_no"] == 1
        assert len(data["case_key"]) == 16
        assert data["status"] == "in_negotiation"
        assert data["applicant_approved_at"] is None

    def test_case_response_reads_orm_rows(self, db_session):
        import warnings

        from quotedesk.api.routers.cases import CaseResponse

        case = create_case(db_session, subject="Chiller service")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            response = CaseResponse.model_validate(case)

        assert CaseResponse.model_config["from_attributes"] is True
        assert response.subject == "Chiller service"

    def test_register_case_unknown_staff(self, client: TestClient):
        response = client.post("/api/cases", json={"subject": "x", "staff_id": 999})
        assert response.status_code == 400

    def test_list_with_keyword_and_badge(self, client: TestClient, db_session):
        route = create_approval_route(db_session)
        matching = create_case(db_session, staff=route["applicant"], subject="Boiler replacement")
        create_case(db_session, subject="Roof repair", customer_name="Mori Co")
        db_session.commit()
        post_action(client, matching.case_key, "applicant", "approve_only")

        response = client.get("/api/cases", params={"keyword": "boiler"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["case_key"] == matching.case_key
        assert data["items"][0]["staff_name"] == "Applicant"
        assert data["items"][0]["approval_badge"] == "applicant_approved"

        by_staff = client.get("/api/cases", params={"keyword": "Applicant"}).json()
        assert by_staff["total"] == 1

        everything = client.get("/api/cases").json()
        assert everything["total"] == 2

    def test_case_detail_includes_progress(self, client: TestClient, db_session):
        route = create_approval_route(db_session)
        case = create_case(db_session, staff=route["applicant"])
        db_session.commit()

        response = client.get(f"/api/cases/{case.case_key}")

        assert response.status_code == 200
        progress = response.json()["progress"]
        assert progress["stage"] == "awaiting_section_head"
        assert progress["text"] == "awaiting section head (Section Head)"

    def test_case_not_found(self, client: TestClient):
        assert client.get("/api/cases/does-not-exist").status_code == 404

    def test_status_change(self, client: TestClient, db_session):
        case = create_case(db_session)
        db_session.commit()

        first = client.patch(f"/api/cases/{case.case_key}/status", json={"status": "order_received"})
        again = client.patch(f"/api/cases/{case.case_key}/status", json={"status": "order_received"})

        assert first.json()["changed"] is True
        assert again.json()["changed"] is False
        db_session.refresh(case)
        assert case.status == "order_received"

    def test_status_change_rejects_unknown_status(self, client: TestClient, db_session):
        case = create_case(db_session)
        db_session.commit()

        response = client.patch(f"/api/cases/{case.case_key}/status", json={"status": "shipped"})
        assert response.status_code == 422


class TestApprovalActions:
    def test_forward_sends_notification(self, client: TestClient, db_session, notifier):
        route = create_approval_route(db_session)
        case = create_case(db_session, staff=route["applicant"])
        db_session.commit()

        response = post_action(client, case.case_key, "applicant", "approve_and_forward", actor="Applicant")

        assert response.status_code == 200
        data = response.json()
        assert data["record"]["applicant_approved_at"] is not None
        assert data["progress"]["waiting_on"] == "section_head"
        assert data["notifications_sent"] == 1
        assert data["notification_failures"] == []
        notifier.send.assert_awaited_once()
        channel, kind, context = notifier.send.await_args.args
        assert channel == "sectionhead@example.com"
        assert kind == TemplateKind.FORWARD
        assert context["approved_by"] == "Applicant"

    def test_guard_denied_is_conflict(self, client: TestClient, db_session):
        case = create_case(db_session)
        db_session.commit()

        response = post_action(client, case.case_key, "director", "approve_only")

        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "predecessor_missing"
        assert client.get(f"/api/approvals/{case.case_key}/history").json() == []

    def test_unknown_case_is_not_found(self, client: TestClient):
        response = post_action(client, "nope", "applicant", "approve_only")
        assert response.status_code == 404

    def test_invalid_action_is_unprocessable(self, client: TestClient, db_session):
        case = create_case(db_session)
        db_session.commit()
        response = post_action(client, case.case_key, "applicant", "approve_everything")
        assert response.status_code == 422

    def test_notification_failure_is_reported(self, client: TestClient, db_session, notifier):
        route = create_approval_route(db_session)
        case = create_case(db_session, staff=route["applicant"])
        db_session.commit()
        notifier.send.side_effect = SendError("sectionhead@example.com", "mailbox unavailable")

        response = post_action(client, case.case_key, "applicant", "approve_and_forward")

        assert response.status_code == 200
        data = response.json()
        assert data["notifications_sent"] == 0
        assert data["notification_failures"] == [
            {"channel": "sectionhead@example.com", "error": "mailbox unavailable"}
        ]
        stored = db_session.query(Case).filter(Case.case_key == case.case_key).one()
        assert stored.applicant_approved_at is not None

    def test_notification_database_error_is_reported(self, client: TestClient, db_session):
        from sqlalchemy.exc import OperationalError

        from quotedesk.api.deps import get_notifier
        from quotedesk.api.main import app
        from quotedesk.core.config import Settings
        from quotedesk.services.notifications import NotificationService

        route = create_approval_route(db_session)
        case = create_case(db_session, staff=route["applicant"])
        db_session.commit()
        settings = Settings(_env_file=None, smtp_host="smtp.example.com")
        app.dependency_overrides[get_notifier] = lambda: NotificationService(db_session, settings)
        error = OperationalError("SELECT", {}, Exception("database is locked"))

        with patch.object(NotificationService, "_build_context", side_effect=error):
            response = post_action(client, case.case_key, "applicant", "approve_and_forward")

        assert response.status_code == 200
        data = response.json()
        assert data["record"]["applicant_approved_at"] is not None
        assert data["notifications_sent"] == 0
        assert data["notification_failures"][0]["channel"] == "sectionhead@example.com"
        db_session.refresh(case)
        assert case.applicant_approved_at is not None

    def test_commit_failure_is_service_unavailable(self, client: TestClient, db_session):
        from sqlalchemy.exc import OperationalError

        case = create_case(db_session)
        db_session.commit()

        with patch.object(db_session, "commit", side_effect=OperationalError("COMMIT", {}, Exception("locked"))):
            response = post_action(client, case.case_key, "applicant", "approve_only")

        assert response.status_code == 503
        assert client.get(f"/api/approvals/{case.case_key}/history").json() == []


class TestHistoryAndProgress:
    def test_history_records_each_transition(self, client: TestClient, db_session):
        route = create_approval_route(db_session)
        case = create_case(db_session, staff=route["applicant"])
        db_session.commit()

        post_action(client, case.case_key, "applicant", "approve_and_forward")
        post_action(client, case.case_key, "section_head", "approve_and_forward")
        post_action(client, case.case_key, "director", "reject")
        post_action(client, case.case_key, "applicant", "cancel_applicant_approval")

        history = client.get(f"/api/approvals/{case.case_key}/history").json()
        assert [(e["tier"], e["action"]) for e in history] == [
            ("applicant", "approve_and_forward"),
            ("section_head", "approve_and_forward"),
            ("director", "reject"),
            ("applicant", "cancel_applicant_approval"),
        ]
        assert history[0]["channel"] == "sectionhead@example.com"

    def test_progress_stamps(self, client: TestClient, db_session):
        route = create_approval_route(db_session)
        case = create_case(db_session, staff=route["applicant"])
        db_session.commit()
        post_action(client, case.case_key, "applicant", "approve_only")
        post_action(client, case.case_key, "section_head", "approve_with_oral_request")

        response = client.get(f"/api/approvals/{case.case_key}/progress")

        assert response.status_code == 200
        data = response.json()
        assert data["stage"] == "verbal_to_director"
        assert data["badge"] == "section_head_approved"
        stamps = {s["tier"]: s for s in data["stamps"]}
        assert stamps["applicant"]["visible"] is True
        assert stamps["section_head"]["visible"] is True
        assert stamps["director"]["visible"] is False
        assert stamps["section_head"]["stamp_path"] == "stamps/section_head.png"

    def test_progress_not_found(self, client: TestClient):
        assert client.get("/api/approvals/nope/progress").status_code == 404
        assert client.get("/api/approvals/nope/history").status_code == 404
