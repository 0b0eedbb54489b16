#!/usr/bin/env python3
"""
HTTP surface: identity and role gates, error payloads, and the main
booking and calendar flows end to end.
"""

import os
import sys
from unittest.mock import AsyncMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from clinic_booking.services import booking

from conftest import BOOKING_DAY, add_appointment, as_user

DAY = BOOKING_DAY.isoformat()


def booking_body(service_id, start="08:00", **extra):
    body = {"service_id": service_id, "date": DAY, "start_time": start, "payment_method": "cash"}
    body.update(extra)
    return body


@pytest.mark.integration
class TestIdentity:

    @pytest.mark.asyncio
    async def test_missing_user_header(self, client, clinic):
        response = await client.get("/appointments/mine")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, clinic):
        response = await client.get("/appointments/mine", headers={"X-User-Id": "999999"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path", [
        ("get", "/appointments"),
        ("get", "/clinic-calendar/daily"),
        ("get", "/weekly-schedule"),
        ("get", "/dentists"),
    ])
    async def test_patient_cannot_use_staff_routes(self, client, clinic, method, path):
        response = await getattr(client, method)(path, headers=as_user(clinic.patient_user))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_staff_cannot_close_days(self, client, clinic):
        response = await client.put(f"/clinic-calendar/{DAY}/closure", json={"closed": True},
                                    headers=as_user(clinic.staff))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_staff_cannot_cancel_for_patient(self, client, clinic):
        appt = await add_appointment_via(client, clinic)
        response = await client.post(f"/appointments/{appt['id']}/cancel", headers=as_user(clinic.staff))
        assert response.status_code == 403


async def add_appointment_via(client, clinic, start="08:00"):
    response = await client.post("/appointments", json=booking_body(clinic.consult_id, start),
                                 headers=as_user(clinic.patient_user))
    assert response.status_code == 201, response.text
    return response.json()["appointment"]


@pytest.mark.integration
@pytest.mark.essential
class TestBookingFlow:

    @pytest.mark.asyncio
    async def test_book_and_list(self, client, clinic):
        response = await client.post("/appointments", json=booking_body(clinic.consult_id),
                                     headers=as_user(clinic.patient_user))
        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Appointment booked."
        assert len(data["reference_code"]) == 8
        assert data["appointment"]["time_slot"] == "08:00-08:30"
        assert data["appointment"]["status"] == "pending"

        mine = await client.get("/appointments/mine", headers=as_user(clinic.patient_user))
        assert [a["id"] for a in mine.json()] == [data["appointment"]["id"]]

        others = await client.get("/appointments/mine", headers=as_user(clinic.unlinked_user))
        assert others.json() == []

        pending = await client.get("/appointments", params={"status": "pending"}, headers=as_user(clinic.staff))
        assert len(pending.json()) == 1

    @pytest.mark.asyncio
    async def test_capacity_rejection_payload(self, client, short_day):
        await add_appointment_via(client, short_day)
        response = await client.post("/appointments", json=booking_body(short_day.consult_id),
                                     headers=as_user(short_day.other_user))
        assert response.status_code == 422
        assert response.json() == {
            "message": "Time slot starting at 08:00 is already full.",
            "reason": "capacity_full",
            "full_at": "08:00",
        }

    @pytest.mark.asyncio
    async def test_slot_taken_while_waiting_for_lock(self, client, session_factory, short_day, monkeypatch):
        real_lock = booking.lock_booking_day

        async def lock_after_rival(session, day):
            async with session_factory() as rival:
                await add_appointment(rival, patient_id=short_day.other_patient_id,
                                      service_id=short_day.consult_id, status="approved")
            return await real_lock(session, day)

        monkeypatch.setattr(booking, "lock_booking_day", lock_after_rival)

        response = await client.post("/appointments", json=booking_body(short_day.consult_id),
                                     headers=as_user(short_day.patient_user))
        assert response.status_code == 409
        assert response.json() == {
            "message": "Time slot starting at 08:00 was just filled. Please choose another time.",
            "reason": "slot_just_filled",
            "full_at": "08:00",
        }

    @pytest.mark.asyncio
    async def test_schema_validation_payload(self, client, clinic):
        response = await client.post("/appointments", json={"service_id": clinic.consult_id, "date": DAY},
                                     headers=as_user(clinic.patient_user))
        assert response.status_code == 422
        body = response.json()
        assert body["message"]
        fields = {e["field"] for e in body["errors"]}
        assert {"start_time", "payment_method"} <= fields

    @pytest.mark.asyncio
    async def test_bad_date_format(self, client, clinic):
        response = await client.post("/appointments", json=booking_body(clinic.consult_id, date="03-01-2030"),
                                     headers=as_user(clinic.patient_user))
        assert response.status_code == 422
        assert response.json()["field"] == "date"

    @pytest.mark.asyncio
    async def test_unlinked_account(self, client, clinic):
        response = await client.post("/appointments", json=booking_body(clinic.consult_id),
                                     headers=as_user(clinic.unlinked_user))
        assert response.status_code == 422
        assert response.json()["reason"] == "no_linked_patient"

    @pytest.mark.asyncio
    async def test_slots(self, client, short_day):
        response = await client.get("/appointments/slots", params={"date": DAY},
                                    headers=as_user(short_day.patient_user))
        assert response.json() == {"slots": ["08:00", "08:30"]}

        await add_appointment_via(client, short_day)
        response = await client.get("/appointments/slots",
                                    params={"date": DAY, "service_id": short_day.consult_id},
                                    headers=as_user(short_day.patient_user))
        assert response.json() == {"slots": ["08:30"]}

    @pytest.mark.asyncio
    async def test_approve_resolve_and_cancel(self, client, clinic):
        first = await add_appointment_via(client, clinic)
        second = await add_appointment_via(client, clinic, "09:00")

        approved = await client.post(f"/appointments/{first['id']}/approve", headers=as_user(clinic.staff))
        assert approved.status_code == 200
        assert approved.json()["appointment"]["status"] == "approved"

        again = await client.post(f"/appointments/{first['id']}/approve", headers=as_user(clinic.staff))
        assert again.status_code == 422
        assert again.json()["reason"] == "already_processed"

        resolved = await client.get(f"/appointments/resolve/{first['reference_code']}", headers=as_user(clinic.staff))
        assert resolved.status_code == 200
        assert resolved.json()["patient_name"] == "Maria Santos"

        exact = await client.get("/appointments/resolve-exact", params={"code": second["reference_code"]},
                                 headers=as_user(clinic.staff))
        assert exact.json()["id"] == second["id"]

        cancel_approved = await client.post(f"/appointments/{first['id']}/cancel",
                                            headers=as_user(clinic.patient_user))
        assert cancel_approved.status_code == 422
        assert cancel_approved.json()["message"] == "Only pending appointments can be canceled."

        cancelled = await client.post(f"/appointments/{second['id']}/cancel", headers=as_user(clinic.patient_user))
        assert cancelled.json()["appointment"]["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_reject_requires_note(self, client, clinic):
        appt = await add_appointment_via(client, clinic)
        blank = await client.post(f"/appointments/{appt['id']}/reject", json={"note": "   "},
                                  headers=as_user(clinic.staff))
        assert blank.status_code == 422

        rejected = await client.post(f"/appointments/{appt['id']}/reject", json={"note": "Dentist on leave"},
                                     headers=as_user(clinic.staff))
        assert rejected.json()["appointment"]["notes"] == "Dentist on leave"

    @pytest.mark.asyncio
    async def test_missing_appointment(self, client, clinic):
        response = await client.post("/appointments/999/approve", headers=as_user(clinic.staff))
        assert response.status_code == 404
        assert response.json()["reason"] == "not_found"

    @pytest.mark.asyncio
    async def test_notifier_is_injectable(self, client, clinic):
        from clinic_booking.api.deps import get_notifier
        from clinic_booking.main import app

        sink = AsyncMock()
        app.dependency_overrides[get_notifier] = lambda: sink
        await add_appointment_via(client, clinic)

        sink.emit.assert_awaited_once()
        payload = sink.emit.await_args.args[0]
        assert payload.type == "new_appointment"
        assert payload.audience_roles == ["admin", "staff"]


@pytest.mark.integration
class TestCalendarFlow:

    @pytest.mark.asyncio
    async def test_close_day(self, client, clinic):
        await add_appointment_via(client, clinic)

        response = await client.put(f"/clinic-calendar/{DAY}/closure",
                                    json={"closed": True, "message": "Typhoon"},
                                    headers=as_user(clinic.admin))
        assert response.status_code == 200
        assert response.json() == {"message": "Clinic closure updated.", "auto_rejected": 1}

        alerts = await client.get("/clinic-calendar/alerts", params={"withinDays": 7},
                                  headers=as_user(clinic.patient_user))
        assert alerts.json()["closures"] == [{"date": DAY, "closure_message": "Typhoon"}]

        slots = await client.get("/appointments/slots", params={"date": DAY}, headers=as_user(clinic.patient_user))
        assert slots.json() == {"slots": []}

    @pytest.mark.asyncio
    async def test_day_capacity(self, client, clinic):
        response = await client.put(f"/clinic-calendar/day/{DAY}", json={"max_parallel": 1, "note": "one chair"},
                                    headers=as_user(clinic.admin))
        assert response.status_code == 200
        assert response.json() == {"ok": True}

        outside = await client.put("/clinic-calendar/day/2030-02-01", json={"max_parallel": 1},
                                   headers=as_user(clinic.admin))
        assert outside.status_code == 422
        assert outside.json()["reason"] == "outside_edit_window"

        negative = await client.put(f"/clinic-calendar/day/{DAY}", json={"max_parallel": -1},
                                    headers=as_user(clinic.admin))
        assert negative.status_code == 422

    @pytest.mark.asyncio
    async def test_daily_and_preview(self, client, clinic):
        daily = await client.get("/clinic-calendar/daily", params={"from": DAY, "days": 2},
                                 headers=as_user(clinic.staff))
        assert [row["date"] for row in daily.json()] == [DAY, "2030-01-04"]

        preview = await client.get("/clinic-calendar/preview", headers=as_user(clinic.staff))
        rows = preview.json()
        assert len(rows) == 14
        assert rows[0]["bookable_for_patients"] is False
        assert rows[1]["bookable_for_patients"] is True

    @pytest.mark.asyncio
    async def test_override_crud(self, client, clinic):
        created = await client.post("/clinic-calendar", json={"date": DAY, "is_open": True,
                                                              "open_time": "10:00", "close_time": "12:00"},
                                    headers=as_user(clinic.admin))
        assert created.status_code == 201
        row = created.json()
        assert row["open_time"] == "10:00"
        assert row["is_generated"] is False

        duplicate = await client.post("/clinic-calendar", json={"date": DAY, "is_open": False},
                                      headers=as_user(clinic.admin))
        assert duplicate.status_code == 422
        assert duplicate.json()["message"] == "The date has already been taken."

        listed = await client.get("/clinic-calendar", headers=as_user(clinic.staff))
        assert [r["id"] for r in listed.json()] == [row["id"]]

        slots = await client.get("/appointments/slots", params={"date": DAY}, headers=as_user(clinic.patient_user))
        assert slots.json() == {"slots": ["10:00", "10:30", "11:00", "11:30"]}

        deleted = await client.delete(f"/clinic-calendar/{row['id']}", headers=as_user(clinic.admin))
        assert deleted.json() == {"message": "Event removed from clinic calendar."}

    @pytest.mark.asyncio
    async def test_weekly_schedule(self, client, clinic):
        rows = (await client.get("/weekly-schedule", headers=as_user(clinic.staff))).json()
        assert [r["weekday"] for r in rows] == list(range(7))
        assert rows[0]["open_time"] == "08:00"

        closed = await client.patch(f"/weekly-schedule/{rows[4]['id']}", json={"is_open": False},
                                    headers=as_user(clinic.admin))
        assert closed.status_code == 200
        assert closed.json()["open_time"] is None

    @pytest.mark.asyncio
    async def test_dentists(self, client, clinic):
        created = await client.post("/dentists", json={"dentist_code": "D-010", "thu": True},
                                    headers=as_user(clinic.admin))
        assert created.status_code == 201

        available = await client.get("/dentists/available", params={"date": DAY}, headers=as_user(clinic.staff))
        assert available.json() == {"date": DAY, "count": 2, "dentist_codes": ["D-001", "D-010"]}

        no_days = await client.post("/dentists", json={"dentist_code": "D-011"}, headers=as_user(clinic.admin))
        assert no_days.status_code == 422

        missing = await client.get("/dentists/999", headers=as_user(clinic.staff))
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_closure_impacts_feed(self, client, clinic):
        appt = await add_appointment_via(client, clinic)
        await client.post("/clinic-calendar", json={"date": DAY, "is_open": False, "note": "Power outage"},
                          headers=as_user(clinic.admin))

        response = await client.get("/me/closure-impacts", headers=as_user(clinic.patient_user))
        impacts = response.json()["impacts"]
        assert [i["appointment_id"] for i in impacts] == [appt["id"]]
        assert impacts[0]["closure_message"] == "Power outage"
