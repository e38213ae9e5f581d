from datetime import datetime

from fastapi.testclient import TestClient
import pytest

from slotbook.api.dependencies import get_clock, get_db, get_member_directory, get_payment_provider
from slotbook.core.ulid_helper import generate_ulid
from slotbook.main import create_app
from slotbook.services.alert_service import COMPENSATION_FAILED_ALERT, AlertService
from slotbook.services.reservation_scheduler import ReservationScheduler


@pytest.fixture
def client(session_factory, clock, members, payment_provider):
    app = create_app()

    def _get_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_member_directory] = lambda: members
    app.dependency_overrides[get_payment_provider] = lambda: payment_provider
    # No context manager: startup would create tables on the configured database
    return TestClient(app)


def _buy(client, member_id="alice", pack_code="pack5", method="pm_card_visa"):
    return client.post(
        f"/api/v1/members/{member_id}/credits/purchase",
        json={"pack_code": pack_code, "payment_method": method, "payer_ref": f"cus_{member_id}"},
    )


def _book(client, member_id="alice", day="2025-06-03", slot_code="AM1"):
    return client.post("/api/v1/bookings", json={"member_id": member_id, "day": day, "slot_code": slot_code})


class TestCredits:
    def test_purchase_and_balance(self, client):
        response = _buy(client)

        assert response.status_code == 201
        body = response.json()
        assert body["credits"] == 5
        assert body["balance"] == 5
        assert body["status_band"] == "ok"

        balance = client.get("/api/v1/members/alice/credits").json()
        assert balance == {"member_id": "alice", "balance": 5, "status_band": "ok"}

    def test_declined_purchase(self, client):
        response = _buy(client, method="pm_card_declined")

        assert response.status_code == 402
        assert response.json()["detail"]["code"] == "PAYMENT_ERROR"
        assert client.get("/api/v1/members/alice/credits").json()["balance"] == 0

    def test_unknown_pack(self, client):
        response = _buy(client, pack_code="pack99")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "CREDIT_PACK_NOT_FOUND"

    def test_unknown_member_cannot_buy(self, client, payment_provider):
        response = _buy(client, member_id="mallory")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "MEMBER_NOT_FOUND"
        assert payment_provider.charges == {}

    def test_purchase_records(self, client):
        _buy(client)
        _buy(client, method="pm_card_declined")

        body = client.get("/api/v1/members/alice/credits/purchases").json()
        assert body["member_id"] == "alice"
        assert sorted(p["status"] for p in body["purchases"]) == ["COMPLETED", "FAILED"]

    def test_history(self, client):
        _buy(client, pack_code="single")
        _book(client)

        body = client.get("/api/v1/members/alice/credits/history").json()

        assert body["balance"] == 0
        assert sorted(entry["entry_type"] for entry in body["entries"]) == ["consume", "purchase"]


class TestBookings:
    def test_book_then_list_upcoming(self, client):
        _buy(client)

        response = _book(client)

        assert response.status_code == 201
        session = response.json()
        assert session["status"] == "CONFIRMED"
        assert session["slot_code"] == "AM1"
        upcoming = client.get("/api/v1/members/alice/sessions/upcoming").json()
        assert upcoming["total"] == 1
        assert upcoming["sessions"][0]["id"] == session["id"]
        assert client.get(f"/api/v1/bookings/{session['id']}").json()["id"] == session["id"]

    def test_slot_conflict(self, client):
        _buy(client, "alice")
        _buy(client, "bob")
        _book(client, "alice")

        response = _book(client, "bob")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "SLOT_UNAVAILABLE"

    def test_insufficient_credits(self, client):
        response = _book(client)

        assert response.status_code == 402
        assert response.json()["detail"]["code"] == "INSUFFICIENT_CREDITS"

    def test_invalid_date(self, client):
        response = _book(client, day="2025-06-07")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_DATE"

    def test_unknown_member(self, client):
        response = _book(client, member_id="mallory")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "MEMBER_NOT_FOUND"

    def test_cancel_refunds(self, client):
        _buy(client, pack_code="single")
        session_id = _book(client).json()["id"]

        response = client.post(f"/api/v1/bookings/{session_id}/cancel", json={"reason": "sick"})

        assert response.status_code == 200
        body = response.json()
        assert body["refunded"] is True
        assert body["session"]["status"] == "CANCELLED"
        assert client.get("/api/v1/members/alice/credits").json()["balance"] == 1

        again = client.post(f"/api/v1/bookings/{session_id}/cancel")
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "ALREADY_TERMINAL"

    def test_unknown_session(self, client):
        response = client.get("/api/v1/bookings/01JX0000000000000000000000")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "SESSION_NOT_FOUND"

    def test_completed_session_moves_to_past(self, client, clock, session_factory):
        _buy(client, pack_code="single")
        session_id = _book(client).json()["id"]

        clock.set(datetime(2025, 6, 3, 12, 0))
        db = session_factory()
        try:
            ReservationScheduler(db, clock=clock).sweep_completions()
        finally:
            db.close()

        past = client.get("/api/v1/members/alice/sessions/past").json()
        assert [s["id"] for s in past["sessions"]] == [session_id]
        assert past["sessions"][0]["status"] == "COMPLETED"


class TestAvailability:
    def test_month_view(self, client):
        _buy(client, pack_code="single")
        _book(client)

        response = client.get("/api/v1/availability/2025/6")

        assert response.status_code == 200
        body = response.json()
        assert body["month"] == "2025-06"
        assert [slot["code"] for slot in body["slots"]] == ["AM1", "AM2"]
        days = {day["day"]: day for day in body["days"]}
        assert len(days) == 30
        assert days["2025-06-03"]["slots"] == {"AM1": "booked", "AM2": "free"}
        assert days["2025-06-07"]["slots"] == {"AM1": "unavailable", "AM2": "unavailable"}
        assert (days["2025-06-03"]["free"], days["2025-06-03"]["booked"]) == (1, 1)

    def test_invalid_month(self, client):
        assert client.get("/api/v1/availability/2025/13").status_code == 422


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_metrics_endpoint(client):
    response = client.get("/metrics")
    assert response.status_code == 200


def _block(member_id="alice", weekday=2, slot_code="AM1", start="2025-06-01", end="2025-06-30"):
    return {
        "member_id": member_id,
        "weekday": weekday,
        "slot_code": slot_code,
        "start_date": start,
        "end_date": end,
    }


class TestBlockBookings:
    def test_preview(self, client):
        _buy(client, pack_code="single")

        body = client.post("/api/v1/block-bookings/preview", json=_block()).json()

        assert body["days"] == ["2025-06-03", "2025-06-10", "2025-06-17", "2025-06-24"]
        assert body["sessions_covered"] == 1
        assert body["credits_needed"] == 3

    def test_create_reports_each_day(self, client):
        _buy(client, pack_code="single")

        response = client.post("/api/v1/block-bookings", json=_block())

        assert response.status_code == 201
        body = response.json()
        assert body["block"]["status"] == "ACTIVE"
        assert body["booked"] == 1
        assert body["failed"] == 3
        assert body["occurrences"][0]["session_id"] is not None
        assert {o["error"] for o in body["occurrences"][1:]} == {"INSUFFICIENT_CREDITS"}

        listed = client.get("/api/v1/block-bookings", params={"member_id": "alice"}).json()
        assert [b["id"] for b in listed["blocks"]] == [body["block"]["id"]]

    def test_slot_not_offered(self, client):
        response = client.post("/api/v1/block-bookings", json=_block(weekday=7))
        assert response.status_code == 400

    def test_end_before_start_is_rejected(self, client):
        response = client.post("/api/v1/block-bookings/preview", json=_block(start="2025-06-30", end="2025-06-01"))
        assert response.status_code == 422

    def test_pause_then_delete(self, client):
        _buy(client)
        block_id = client.post("/api/v1/block-bookings", json=_block()).json()["block"]["id"]

        paused = client.post(f"/api/v1/block-bookings/{block_id}/pause").json()
        assert paused["status"] == "PAUSED"

        deleted = client.delete(f"/api/v1/block-bookings/{block_id}").json()
        assert deleted == {"id": block_id, "sessions_kept": 4}
        assert client.get(f"/api/v1/block-bookings/{block_id}").status_code == 404

    def test_extend(self, client):
        _buy(client)
        block_id = client.post("/api/v1/block-bookings", json=_block(end="2025-06-12")).json()["block"]["id"]

        body = client.post(f"/api/v1/block-bookings/{block_id}/extend", json={"end_date": "2025-06-30"}).json()

        assert body["block"]["end_date"] == "2025-06-30"
        assert body["booked"] == 2


class TestAlerts:
    def test_open_alerts_and_correlation_lookup(self, client, session_factory):
        correlation_id = generate_ulid()
        db = session_factory()
        try:
            AlertService(db).record_compensation_failure(
                member_id="alice",
                booking_id=generate_ulid(),
                correlation_id=correlation_id,
                error=RuntimeError("ledger offline"),
                context={"stage": "cancel"},
            )
        finally:
            db.close()

        body = client.get("/api/v1/alerts", params={"alert_type": COMPENSATION_FAILED_ALERT}).json()
        assert body["total"] == 1
        assert body["alerts"][0]["severity"] == "critical"

        by_correlation = client.get(f"/api/v1/alerts/correlation/{correlation_id}").json()
        assert by_correlation["alerts"][0]["details"]["stage"] == "cancel"
        assert client.get("/api/v1/alerts/correlation/not-a-ulid").status_code == 422
