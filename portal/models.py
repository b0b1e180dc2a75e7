"""
Database models for the TrustRx backend.

These models capture the records the patient portal works with: users
and their sign-in state, the doctor directory, appointments, uploaded
medical records and the ledger anchors that back record verification.
Field names mirror the JSON exposed to the front-end where possible so
the transformation to responses stays shallow.
"""
from __future__ import annotations

import datetime
import os
import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user model with a role, subscription tier and sign-in metadata.

    ``email`` is the login identifier for email sign-ups and ``phone``
    (E.164) for OTP sign-ins.  Both are nullable so that accounts created
    through another provider do not collide on empty strings.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    TIER_CHOICES = [
        ('free', 'Free'),
        ('basic', 'Basic'),
        ('premium', 'Premium'),
        ('unlimited', 'Unlimited'),
    ]
    PROVIDER_CHOICES = [
        ('email', 'Email'),
        ('phone', 'Phone'),
        ('google', 'Google'),
        ('demo', 'Demo'),
    ]

    email = models.EmailField(unique=True, null=True, blank=True)
    display_name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=20, unique=True, null=True, blank=True)
    photo_url = models.URLField(max_length=500, blank=True)
    subscription_tier = models.CharField(max_length=10, choices=TIER_CHOICES, default='free')
    auth_provider = models.CharField(max_length=10, choices=PROVIDER_CHOICES, default='email')
    is_demo = models.BooleanField(default=False)
    totp_secret = models.CharField(max_length=64, blank=True)
    totp_enabled = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        # '' would violate the unique constraints
        self.email = self.email or None
        self.phone = self.phone or None
        super().save(*args, **kwargs)

    @property
    def name(self) -> str:
        return self.display_name or self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.email or self.phone or self.username} ({self.role})"


class PhoneOTP(models.Model):
    """A one-time sign-in code sent by SMS.  Only a salted hash is kept."""
    phone = models.CharField(max_length=20, db_index=True)
    code_hash = models.CharField(max_length=128)
    expires_at = models.DateTimeField()
    attempts = models.PositiveSmallIntegerField(default=0)
    consumed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['phone', 'created_at'], name='portal_phon_phone_4b1f0e_idx')]

    def __str__(self) -> str:
        return f"otp {self.phone} @ {self.created_at:%F %T}"


class DoctorProfile(models.Model):
    """A directory entry.

    Seeded entries need not have an account, so ``user`` is optional;
    doctors who register get an empty profile linked to their user.
    """
    SPECIALTY_CHOICES = [(s, s) for s in (
        'General Practitioner',
        'Cardiologist',
        'Dermatologist',
        'Neurologist',
        'Pediatrician',
        'Orthopedist',
        'Gynecologist',
        'Psychiatrist',
        'Ophthalmologist',
        'Dentist',
    )]

    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_profile'
    )
    name = models.CharField(max_length=150)
    specialty = models.CharField(max_length=64, choices=SPECIALTY_CHOICES, default='General Practitioner', db_index=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True, db_index=True)
    state = models.CharField(max_length=32, blank=True)
    zip_code = models.CharField(max_length=16, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    accepting_new_patients = models.BooleanField(default=True, db_index=True)
    rating = models.DecimalField(max_digits=2, decimal_places=1, default=0)
    review_count = models.PositiveIntegerField(default=0)
    languages = models.JSONField(default=list, blank=True)
    education = models.CharField(max_length=255, blank=True)
    years_of_experience = models.PositiveIntegerField(default=0)
    is_verified = models.BooleanField(default=False, db_index=True)
    photo_url = models.URLField(max_length=500, blank=True)
    bio = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def location_label(self) -> str:
        return f"{self.city}, {self.state}"

    def __str__(self) -> str:
        return f"{self.name} ({self.specialty})"


class Appointment(models.Model):
    STATUS_REQUESTED = 'requested'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_REQUESTED, 'Requested'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(DoctorProfile, on_delete=models.CASCADE, related_name='appointments')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_REQUESTED, db_index=True)
    date_time = models.DateTimeField()
    duration = models.PositiveIntegerField(default=30, help_text="Length in minutes")
    reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'date_time'], name='portal_appo_patient_2c7d1a_idx'),
            models.Index(fields=['doctor', 'date_time'], name='portal_appo_doctor__9e3b52_idx'),
        ]

    @property
    def ends_at(self) -> datetime.datetime:
        return self.date_time + datetime.timedelta(minutes=self.duration)

    def __str__(self) -> str:
        return f"appt {self.id} {self.patient_id}->{self.doctor_id} {self.status}"


class AppointmentTransition(models.Model):
    """Records a status transition for an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=10, null=True, blank=True)
    to_status = models.CharField(max_length=10)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


def _record_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"records/{datetime.date.today().strftime('%Y/%m')}/{uuid.uuid4().hex}{ext}.enc"


class MedicalRecord(models.Model):
    CATEGORY_CHOICES = [
        ('labResults', 'Lab Results'),
        ('imaging', 'Imaging'),
        ('prescriptions', 'Prescriptions'),
        ('consultations', 'Consultations'),
        ('surgeries', 'Surgeries'),
        ('vaccinations', 'Vaccinations'),
        ('allergies', 'Allergies'),
        ('other', 'Other'),
    ]

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='medical_records')
    # ciphertext; the plaintext is never written to storage
    file = models.FileField(upload_to=_record_upload, max_length=512)
    file_name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=128)
    file_size = models.PositiveBigIntegerField(default=0)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='labResults', db_index=True)
    description = models.TextField(blank=True)
    upload_date = models.DateField(default=datetime.date.today)
    sha256 = models.CharField(max_length=64)
    transaction_id = models.CharField(max_length=128, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['owner', 'created_at'], name='portal_medi_owner_i_5a0c7e_idx')]

    @property
    def hash_hex(self) -> str:
        return f"0x{self.sha256}"

    def __str__(self) -> str:
        return f"{self.file_name} ({self.owner_id})"


class LedgerAnchor(models.Model):
    """A hash notarised by the mock ledger backend."""
    tx_id = models.CharField(max_length=128, unique=True)
    hash = models.CharField(max_length=130)
    address = models.CharField(max_length=64, blank=True)
    confirmed_round = models.PositiveBigIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.tx_id} -> {self.hash[:18]}"


class Wallet(models.Model):
    """A user's (mock) Algorand TestNet wallet.  The mnemonic is stored encrypted."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='wallet')
    address = models.CharField(max_length=64, unique=True)
    mnemonic_encrypted = models.TextField()
    funded_amount = models.PositiveIntegerField(default=0)
    funding_tx_id = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"wallet {self.address} -> {self.user_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    ip = models.GenericIPAddressField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='portal_audi_action_7f2e19_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='portal_audi_object__c41d8b_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
