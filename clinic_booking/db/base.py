# clinic_booking/db/base.py

"""
This file imports all the ORM models so Alembic can discover them.
Whenever you add a new model, import it here.
"""
from clinic_booking.db.models.user import User
from clinic_booking.db.models.patient import Patient, PatientHmo
from clinic_booking.db.models.service import Service
from clinic_booking.db.models.appointment import Appointment
from clinic_booking.db.models.clinic_calendar import ClinicWeeklySchedule, ClinicCalendar, BookingDayLock
from clinic_booking.db.models.dentist_schedule import DentistSchedule
from clinic_booking.db.models.notification import Notification, NotificationTarget
from clinic_booking.db.session import engine, Base

async def init_db():
    """Initialize database by creating all tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)