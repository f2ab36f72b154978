from datetime import timedelta

from tests.utils.clock import TODAY

STUDENT = "student-1"


def _batch_payload(**overrides):
    payload = {
        "name": "Evening A",
        "subject": "Chemistry",
        "teacher_name": "J. Rao",
        "schedule_pattern": "mwf",
        "start_time": "16:00",
        "end_time": "17:00",
        "capacity": 10,
        "valid_from": TODAY.isoformat(),
        "duration_months": 3,
        "price": "1800.00",
    }
    payload.update(overrides)
    return payload


class TestBatchRoutes:
    def test_create_then_teacher_conflict(self, client, business) -> None:
        url = f"/api/v1/businesses/{business.id}/batches"

        created = client.post(url, json=_batch_payload())
        assert created.status_code == 201
        assert created.json()["status"] == "active"

        clash = client.post(
            url, json=_batch_payload(name="Evening B", start_time="16:30", end_time="17:30")
        )
        assert clash.status_code == 409
        assert clash.headers["content-type"].startswith("application/problem+json")
        body = clash.json()
        assert body["code"] == "TEACHER_CONFLICT"
        assert body["errors"]["overlap_minutes"] == 30
        assert body["errors"]["overlap_days"] == ["mon", "wed", "fri"]

        listed = client.get(url)
        assert [b["name"] for b in listed.json()] == ["Evening A"]

    def test_edit_and_cancel(self, client, business) -> None:
        url = f"/api/v1/businesses/{business.id}/batches"
        batch_id = client.post(url, json=_batch_payload()).json()["id"]

        edited = client.put(f"{url}/{batch_id}", json=_batch_payload(capacity=25))
        assert edited.status_code == 200
        assert edited.json()["capacity"] == 25

        cancelled = client.post(f"{url}/{batch_id}/cancel")
        assert cancelled.json()["status"] == "cancelled"
        assert client.get(url).json() == []
        assert len(client.get(url, params={"include_closed": True}).json()) == 1

    def test_invalid_pattern_is_bad_request(self, client, business) -> None:
        response = client.post(
            f"/api/v1/businesses/{business.id}/batches",
            json=_batch_payload(schedule_pattern="fortnightly"),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PATTERN"

    def test_unknown_fields_rejected(self, client, business) -> None:
        response = client.post(
            f"/api/v1/businesses/{business.id}/batches", json=_batch_payload(room="A1")
        )
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestReservationRoutes:
    def test_add_check_and_remaining(self, client, business, make_batch) -> None:
        physics = make_batch(business, subject="Physics", start_time="16:00", end_time="17:00")
        biology = make_batch(
            business, subject="Biology", teacher_name="T2", start_time="16:30", end_time="17:30"
        )
        base = f"/api/v1/students/{STUDENT}/reservation"

        added = client.post(f"{base}/items", json={"batch_id": physics.id})
        assert added.status_code == 201
        assert added.json()["remaining_seconds"] == 900
        assert added.json()["item"]["start_date"] == TODAY.isoformat()

        check = client.post(f"{base}/check", json={"batch_id": biology.id})
        assert check.status_code == 200
        assert check.json()["has_conflict"] is True
        assert check.json()["kind"] == "schedule_conflict"
        assert check.json()["details"]["overlap_minutes"] == 30

        rejected = client.post(f"{base}/items", json={"batch_id": biology.id})
        assert rejected.status_code == 409
        assert rejected.json()["code"] == "SCHEDULE_CONFLICT"

        assert client.get(f"{base}/remaining").json()["remaining_seconds"] == 900
        snapshot = client.get(base).json()
        assert len(snapshot["items"]) == 1
        assert snapshot["total"] == "1500.00"

    def test_candidate_needs_exactly_one_offering(self, client) -> None:
        response = client.post(f"/api/v1/students/{STUDENT}/reservation/items", json={})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CANDIDATE"

    def test_update_and_remove_item(self, client, business, make_batch) -> None:
        batch = make_batch(business)
        base = f"/api/v1/students/{STUDENT}/reservation"
        item_id = client.post(f"{base}/items", json={"batch_id": batch.id}).json()["item"]["id"]

        updated = client.patch(
            f"{base}/items/{item_id}",
            json={"start_date": (TODAY + timedelta(days=2)).isoformat(), "auto_renew": True},
        )
        assert updated.status_code == 200
        assert updated.json()["auto_renew"] is True

        assert client.patch(f"{base}/items/{item_id}", json={}).status_code == 422
        assert client.delete(f"{base}/items/{item_id}").status_code == 204
        assert client.get(f"{base}/remaining").json()["remaining_seconds"] == 0

    def test_expired_reservation_is_gone(self, client, clock, business, make_batch) -> None:
        batch = make_batch(business)
        base = f"/api/v1/students/{STUDENT}"
        client.post(f"{base}/reservation/items", json={"batch_id": batch.id})
        clock.advance(minutes=15)

        response = client.post(
            f"{base}/checkout", json={"contact_name": "Asha", "contact_phone": "9876543210"}
        )

        assert response.status_code == 410
        assert response.json()["code"] == "RESERVATION_EXPIRED"
        assert client.get(f"{base}/reservation").json()["items"] == []


class TestCheckoutAndEnrollmentRoutes:
    def test_checkout_then_locked_cancel(self, client, business, make_batch) -> None:
        batch = make_batch(business)
        base = f"/api/v1/students/{STUDENT}"
        client.post(f"{base}/reservation/items", json={"batch_id": batch.id})

        response = client.post(
            f"{base}/checkout",
            json={"contact_name": "Asha Verma", "contact_email": "asha@example.com"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["order_id"].startswith("ORD-")
        assert body["total_amount"] == "1500.00"
        enrollment_id = body["enrollments"][0]["id"]

        locked = client.post(f"/api/v1/enrollments/{enrollment_id}/cancel")
        assert locked.status_code == 423
        assert locked.json()["code"] == "CANCELLATION_LOCKED"
        assert locked.json()["errors"]["days_remaining"] == 30

        renew = client.patch(
            f"/api/v1/enrollments/{enrollment_id}/auto-renew", json={"auto_renew": True}
        )
        assert renew.json()["auto_renew"] is True
        listed = client.get(f"{base}/enrollments", params={"active_only": True}).json()
        assert [e["id"] for e in listed] == [enrollment_id]

    def test_checkout_rejects_bad_email(self, client) -> None:
        response = client.post(
            f"/api/v1/students/{STUDENT}/checkout",
            json={"contact_name": "Asha", "contact_email": "not-an-email"},
        )
        assert response.status_code == 422

    def test_empty_checkout(self, client) -> None:
        response = client.post(
            f"/api/v1/students/{STUDENT}/checkout",
            json={"contact_name": "Asha", "contact_phone": "9876543210"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "RESERVATION_EMPTY"

    def test_malformed_enrollment_id(self, client) -> None:
        assert client.post("/api/v1/enrollments/not-a-ulid/cancel").status_code == 422

    def test_switch_too_late(self, client, business, make_batch, make_enrollment) -> None:
        current = make_batch(business)
        target = make_batch(business, name="Evening B", teacher_name="T2", schedule_pattern="tts")
        enrollment = make_enrollment(STUDENT, batch=current)

        response = client.post(
            f"/api/v1/enrollments/{enrollment.id}/switch", json={"new_batch_id": target.id}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "SWITCH_NOT_ALLOWED"
        assert response.json()["errors"]["reason"] == "insufficient_notice"


class TestHealthRoutes:
    def test_health(self, client) -> None:
        body = client.get("/api/v1/health").json()
        assert body["status"] == "healthy"
        assert body["service"] == "passdesk-api"

    def test_prometheus_metrics(self, client) -> None:
        response = client.get("/api/v1/metrics/prometheus")
        assert response.status_code == 200
        assert "passdesk" in response.text
