"""
Management command to populate the database with demo data.
"""
from datetime import timedelta

from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from portal.models import Appointment, AppointmentTransition, DoctorProfile, MedicalRecord, User
from portal.services.accounts import ensure_demo_account
from portal.services.doctors import invalidate_directory_cache
from portal.services.records import upload_record

PHOTO = 'https://images.pexels.com/photos/{}/pexels-photo-{}.jpeg?auto=compress&cs=tinysrgb&w=150'

DOCTORS = [
    {
        'name': 'Dr. Sarah Johnson', 'specialty': 'General Practitioner',
        'address': '123 Medical Ave', 'city': 'New York', 'state': 'NY', 'zip_code': '10001',
        'latitude': 40.7506, 'longitude': -73.9972,
        'accepting_new_patients': True, 'rating': '4.8', 'review_count': 124,
        'languages': ['English', 'Spanish'], 'education': 'Harvard Medical School',
        'years_of_experience': 12, 'is_verified': True, 'photo': 5452201,
    },
    {
        'name': 'Dr. Michael Chen', 'specialty': 'Cardiologist',
        'address': '456 Heart Blvd', 'city': 'New York', 'state': 'NY', 'zip_code': '10002',
        'latitude': 40.7157, 'longitude': -73.9863,
        'accepting_new_patients': True, 'rating': '4.9', 'review_count': 89,
        'languages': ['English', 'Mandarin'], 'education': 'Johns Hopkins University',
        'years_of_experience': 15, 'is_verified': True, 'photo': 4225880,
    },
    {
        'name': 'Dr. Emily Rodriguez', 'specialty': 'Dermatologist',
        'address': '789 Skin Lane', 'city': 'Boston', 'state': 'MA', 'zip_code': '02115',
        'latitude': 42.3427, 'longitude': -71.0922,
        'accepting_new_patients': False, 'rating': '4.7', 'review_count': 56,
        'languages': ['English', 'Spanish'], 'education': 'Yale School of Medicine',
        'years_of_experience': 8, 'is_verified': True, 'photo': 5214961,
    },
    {
        'name': 'Dr. David Lee', 'specialty': 'Neurologist',
        'address': '101 Brain St', 'city': 'San Francisco', 'state': 'CA', 'zip_code': '94107',
        'latitude': 37.7621, 'longitude': -122.3971,
        'accepting_new_patients': True, 'rating': '4.6', 'review_count': 78,
        'languages': ['English', 'Korean'], 'education': 'Stanford University',
        'years_of_experience': 10, 'is_verified': False, 'photo': 5215024,
    },
    {
        'name': 'Dr. Jessica Taylor', 'specialty': 'Pediatrician',
        'address': "222 Children's Way", 'city': 'Chicago', 'state': 'IL', 'zip_code': '60601',
        'latitude': 41.8858, 'longitude': -87.6229,
        'accepting_new_patients': True, 'rating': '4.9', 'review_count': 112,
        'languages': ['English'], 'education': 'Northwestern University',
        'years_of_experience': 7, 'is_verified': True, 'photo': 5327585,
    },
    {
        'name': 'Dr. Robert Martinez', 'specialty': 'Orthopedist',
        'address': '350 Bone & Joint Dr', 'city': 'Los Angeles', 'state': 'CA', 'zip_code': '90012',
        'latitude': 34.0614, 'longitude': -118.2385,
        'accepting_new_patients': True, 'rating': '4.5', 'review_count': 64,
        'languages': ['English', 'Spanish'], 'education': 'UCLA David Geffen School of Medicine',
        'years_of_experience': 18, 'is_verified': True, 'photo': 5407206,
    },
    {
        'name': 'Dr. Aisha Patel', 'specialty': 'Psychiatrist',
        'address': '77 Wellness Pkwy', 'city': 'Houston', 'state': 'TX', 'zip_code': '77030',
        'latitude': 29.7079, 'longitude': -95.4010,
        'accepting_new_patients': False, 'rating': '4.8', 'review_count': 95,
        'languages': ['English', 'Hindi', 'Gujarati'], 'education': 'Baylor College of Medicine',
        'years_of_experience': 11, 'is_verified': True, 'photo': 5452293,
    },
    {
        'name': 'Dr. Thomas Nguyen', 'specialty': 'Ophthalmologist',
        'address': '900 Vision Ct', 'city': 'Seattle', 'state': 'WA', 'zip_code': '98104',
        'latitude': 47.6038, 'longitude': -122.3301,
        'accepting_new_patients': True, 'rating': '4.4', 'review_count': 41,
        'languages': ['English', 'Vietnamese'], 'education': 'University of Washington',
        'years_of_experience': 6, 'is_verified': False, 'photo': 6129507,
    },
]

SAMPLE_RECORDS = [
    ('Annual Physical Results.pdf', 'application/pdf', 'labResults',
     'Annual physical examination results from Dr. Sarah Johnson'),
    ('Allergy Test Results.pdf', 'application/pdf', 'labResults',
     'Comprehensive allergy panel from Allergy Specialists'),
    ('Prescription - Amoxicillin.pdf', 'application/pdf', 'prescriptions',
     'Prescription for Amoxicillin 500mg from Dr. James Wilson'),
]


def _bio(d: dict) -> str:
    since = timezone.now().year - d['years_of_experience']
    return (f"{d['name']} is a board-certified {d['specialty'].lower()} with over "
            f"{d['years_of_experience']} years of experience, a graduate of {d['education']} "
            f"practising since {since}.")


class Command(BaseCommand):
    help = 'Populate database with demo directory doctors, demo accounts, appointments and records'

    def add_arguments(self, parser):
        parser.add_argument('--skip-records', action='store_true', help='Do not create sample medical records')

    @transaction.atomic
    def handle(self, *args, **options):
        doctors = self.create_doctors()
        patient = self.create_demo_users()
        self.create_appointments(patient, doctors)
        if not options['skip_records']:
            self.create_records(patient)
        invalidate_directory_cache()
        self.stdout.write(self.style.SUCCESS('Demo data ready.'))

    def create_doctors(self):
        doctors = []
        for d in DOCTORS:
            fields = {k: v for k, v in d.items() if k not in ('name', 'photo')}
            fields['photo_url'] = PHOTO.format(d['photo'], d['photo'])
            fields['bio'] = _bio(d)
            doc, created = DoctorProfile.objects.update_or_create(name=d['name'], user=None, defaults=fields)
            doctors.append(doc)
            self.stdout.write(f"{'created' if created else 'updated'}: {doc}")
        return doctors

    def create_demo_users(self):
        patient = ensure_demo_account(User.ROLE_PATIENT)
        doctor_user = ensure_demo_account(User.ROLE_DOCTOR)
        self.stdout.write(f"demo accounts: {patient.email}, {doctor_user.email}")
        return patient

    def create_appointments(self, patient, doctors):
        if Appointment.objects.filter(patient=patient).exists():
            return
        now = timezone.now().replace(minute=0, second=0, microsecond=0)
        plan = [
            (doctors[0], now + timedelta(days=7, hours=2), 30, Appointment.STATUS_CONFIRMED, 'Annual check-up',
             'Please bring your insurance card and a list of current medications.'),
            (doctors[1], now + timedelta(days=21), 45, Appointment.STATUS_REQUESTED, 'Follow-up after test results', ''),
            (doctors[2], now - timedelta(days=30), 30, Appointment.STATUS_COMPLETED, 'Skin condition examination',
             'Follow-up appointment scheduled in 3 months.'),
            (doctors[4], now - timedelta(days=10), 30, Appointment.STATUS_CANCELLED, 'Vaccination consultation', ''),
        ]
        for doctor, when, duration, status, reason, notes in plan:
            appt = Appointment.objects.create(
                patient=patient, doctor=doctor, date_time=when, duration=duration,
                status=status, reason=reason, notes=notes,
            )
            AppointmentTransition.objects.create(appointment=appt, from_status=None, to_status=status,
                                                 reason='seed')
        self.stdout.write(f"appointments: {len(plan)}")

    def create_records(self, patient):
        if MedicalRecord.objects.filter(owner=patient).exists():
            return
        for name, content_type, category, description in SAMPLE_RECORDS:
            body = f"%PDF-1.4\n% {description}\n".encode()
            upload = SimpleUploadedFile(name, body, content_type=content_type)
            upload_record(patient, upload, category=category, description=description)
        self.stdout.write(f"records: {len(SAMPLE_RECORDS)}")
