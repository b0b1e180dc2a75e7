"""
Django admin registrations for the portal models.

Record blobs and wallet mnemonics are stored encrypted, so the admin only
ever shows their metadata.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AppointmentTransition,
    AuditEvent,
    DoctorProfile,
    LedgerAnchor,
    MedicalRecord,
    PhoneOTP,
    User,
    Wallet,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'phone', 'role', 'subscription_tier', 'auth_provider', 'is_active')
    list_filter = ('role', 'subscription_tier', 'auth_provider', 'is_demo')
    search_fields = ('username', 'email', 'phone', 'display_name')
    exclude = ('password', 'totp_secret')


@admin.register(PhoneOTP)
class PhoneOTPAdmin(admin.ModelAdmin):
    list_display = ('phone', 'created_at', 'expires_at', 'attempts', 'consumed_at')
    search_fields = ('phone',)
    exclude = ('code_hash',)


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialty', 'city', 'state', 'rating', 'accepting_new_patients', 'is_verified')
    list_filter = ('specialty', 'accepting_new_patients', 'is_verified', 'state')
    search_fields = ('name', 'city', 'user__email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'status', 'date_time', 'duration')
    list_filter = ('status',)
    search_fields = ('id', 'patient__email', 'doctor__name')


@admin.register(AppointmentTransition)
class AppointmentTransitionAdmin(admin.ModelAdmin):
    list_display = ('appointment', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)
    search_fields = ('appointment__id', 'operator__email')


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'owner', 'file_name', 'file_type', 'file_size', 'category', 'verified', 'upload_date')
    list_filter = ('category', 'verified', 'file_type')
    search_fields = ('file_name', 'owner__email', 'transaction_id', 'sha256')
    readonly_fields = ('sha256', 'transaction_id', 'verified_at')


@admin.register(LedgerAnchor)
class LedgerAnchorAdmin(admin.ModelAdmin):
    list_display = ('tx_id', 'hash', 'address', 'confirmed_round', 'created_at')
    search_fields = ('tx_id', 'hash', 'address')


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ('address', 'user', 'funded_amount', 'created_at')
    search_fields = ('address', 'user__email')
    exclude = ('mnemonic_encrypted',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'ip', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__email')
