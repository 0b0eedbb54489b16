"""
Staff approval/rejection and patient cancellation.
"""
import os
import sys

import pytest
import sqlalchemy as sa

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from clinic_booking.core.errors import CapacityFull, IdentityGap, NotFound, StateConflict
from clinic_booking.db.models.clinic_calendar import ClinicCalendar
from clinic_booking.db.models.notification import Notification, NotificationTarget
from clinic_booking.services import appointment_actions
from clinic_booking.services.appointment_actions import approve, cancel, reject
from clinic_booking.services.notifications import DatabaseNotificationSink

from conftest import BOOKING_DAY, add_appointment, add_dentists


def approve_while_waiting_for_lock(monkeypatch, session_factory, appointment_id, staff, policy):
    """Another staff member approves the booking just before our lock is taken."""
    real_lock = appointment_actions.lock_booking_day
    fired = []

    async def lock_after_rival(db, day):
        if not fired:
            fired.append(day)
            async with session_factory() as rival:
                await approve(rival, appointment_id, actor=staff, policy=policy)
        return await real_lock(db, day)

    monkeypatch.setattr(appointment_actions, "lock_booking_day", lock_after_rival)


@pytest.mark.integration
class TestApprove:

    @pytest.mark.asyncio
    async def test_approve_pending(self, db, clinic, policy):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        approved = await approve(db, appt.id, actor=clinic.staff, policy=policy,
                                 notifier=DatabaseNotificationSink(db))
        assert approved.status == "approved"

        notice = (await db.execute(sa.select(Notification))).scalar_one()
        assert notice.type == "appointment_status"
        assert notice.scope == "targeted"
        target = (await db.execute(sa.select(NotificationTarget))).scalar_one()
        assert target.user_id == clinic.patient_user.id

    @pytest.mark.asyncio
    async def test_approval_does_not_count_itself(self, db, clinic, policy):
        # One dentist and one pending booking: the block is exactly at capacity
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        assert (await approve(db, appt.id, actor=clinic.staff, policy=policy)).status == "approved"

    @pytest.mark.asyncio
    async def test_approve_over_capacity(self, db, clinic, policy):
        await add_appointment(db, patient_id=clinic.other_patient_id, service_id=clinic.consult_id,
                              time_slot="08:30-09:00", status="approved")
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.extraction_id,
                                     time_slot="08:00-09:00")
        with pytest.raises(CapacityFull) as exc:
            await approve(db, appt.id, actor=clinic.staff, policy=policy)
        assert exc.value.message == "Cannot approve: slot is fully booked."
        assert exc.value.full_at == "08:30"

        await db.refresh(appt)
        assert appt.status == "pending"

    @pytest.mark.asyncio
    async def test_approve_uses_stored_span(self, db, clinic, policy):
        # The service grew longer after booking; approval only checks the booked span
        await add_dentists(db, 1, prefix="X")
        await add_appointment(db, patient_id=clinic.other_patient_id, service_id=clinic.consult_id,
                              time_slot="08:30-09:00", status="approved")
        await add_appointment(db, patient_id=clinic.other_patient_id, service_id=clinic.consult_id,
                              time_slot="08:30-09:00", status="approved")
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.extraction_id,
                                     time_slot="08:00-08:30")
        assert (await approve(db, appt.id, actor=clinic.staff, policy=policy)).status == "approved"

    @pytest.mark.asyncio
    async def test_approve_on_closed_day_fails(self, db, clinic, policy):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        db.add(ClinicCalendar(date=BOOKING_DAY, is_generated=False, is_open=False))
        await db.commit()
        with pytest.raises(CapacityFull):
            await approve(db, appt.id, actor=clinic.staff, policy=policy)

    @pytest.mark.asyncio
    async def test_approve_twice(self, db, clinic, policy):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        await approve(db, appt.id, actor=clinic.staff, policy=policy)
        with pytest.raises(StateConflict) as exc:
            await approve(db, appt.id, actor=clinic.staff, policy=policy)
        assert exc.value.message == "Appointment already processed."

    @pytest.mark.asyncio
    async def test_approve_missing(self, db, clinic, policy):
        with pytest.raises(NotFound):
            await approve(db, 424242, actor=clinic.staff, policy=policy)


@pytest.mark.integration
class TestReject:

    @pytest.mark.asyncio
    async def test_reject_appends_note(self, db, clinic):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id,
                                     notes="First visit")
        rejected = await reject(db, appt.id, note="No dentist available", actor=clinic.staff,
                                notifier=DatabaseNotificationSink(db))
        assert rejected.status == "rejected"
        assert rejected.notes == "First visit | No dentist available"
        notice = (await db.execute(sa.select(Notification))).scalar_one()
        assert notice.severity == "warning"

    @pytest.mark.asyncio
    async def test_reject_processed(self, db, clinic):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id,
                                     status="approved")
        with pytest.raises(StateConflict):
            await reject(db, appt.id, note="late", actor=clinic.staff)


@pytest.mark.integration
class TestCancel:

    @pytest.mark.asyncio
    async def test_owner_cancels_pending(self, db, clinic):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        cancelled = await cancel(db, appt.id, user=clinic.patient_user)
        assert cancelled.status == "cancelled"
        assert cancelled.canceled_at is not None
        assert cancelled.notes == "Cancelled by patient."

    @pytest.mark.asyncio
    async def test_cannot_cancel_approved(self, db, clinic):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id,
                                     status="approved")
        with pytest.raises(StateConflict) as exc:
            await cancel(db, appt.id, user=clinic.patient_user)
        assert exc.value.message == "Only pending appointments can be canceled."

    @pytest.mark.asyncio
    async def test_other_patients_booking_is_not_found(self, db, clinic):
        appt = await add_appointment(db, patient_id=clinic.other_patient_id, service_id=clinic.consult_id)
        with pytest.raises(NotFound):
            await cancel(db, appt.id, user=clinic.patient_user)

    @pytest.mark.asyncio
    async def test_unlinked_account(self, db, clinic):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        with pytest.raises(IdentityGap):
            await cancel(db, appt.id, user=clinic.unlinked_user)


@pytest.mark.integration
class TestLostRaces:

    @pytest.mark.asyncio
    async def test_reject_after_concurrent_approval(self, db, clinic, policy, session_factory, monkeypatch):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        approve_while_waiting_for_lock(monkeypatch, session_factory, appt.id, clinic.staff, policy)

        with pytest.raises(StateConflict) as exc:
            await reject(db, appt.id, note="No dentist available", actor=clinic.staff)
        assert exc.value.message == "Appointment already processed."

        await db.refresh(appt)
        assert appt.status == "approved"
        assert appt.notes is None

    @pytest.mark.asyncio
    async def test_cancel_after_concurrent_approval(self, db, clinic, policy, session_factory, monkeypatch):
        appt = await add_appointment(db, patient_id=clinic.patient_id, service_id=clinic.consult_id)
        approve_while_waiting_for_lock(monkeypatch, session_factory, appt.id, clinic.staff, policy)

        with pytest.raises(StateConflict) as exc:
            await cancel(db, appt.id, user=clinic.patient_user)
        assert exc.value.message == "Only pending appointments can be canceled."

        await db.refresh(appt)
        assert appt.status == "approved"
        assert appt.canceled_at is None
