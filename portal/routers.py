"""
URL mappings for the TrustRx API.

Trailing slashes are deliberately omitted (``APPEND_SLASH = False``);
the front-end calls every path exactly as listed here.
"""
from django.urls import include, path

from .views import appointments, auth, chat, doctors, health, profile, records, wallet

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),

    # Authentication
    path('api/auth/register', auth.register_view, name='register_view'),
    path('api/auth/login', auth.login_view, name='login_view'),
    path('api/auth/phone/request-otp', auth.phone_request_otp_view, name='phone_request_otp_view'),
    path('api/auth/phone/resend-otp', auth.phone_resend_otp_view, name='phone_resend_otp_view'),
    path('api/auth/phone/verify', auth.phone_verify_view, name='phone_verify_view'),
    path('api/auth/google', auth.google_login_view, name='google_login_view'),
    path('api/auth/demo', auth.demo_session_view, name='demo_session_view'),
    path('api/auth/password-strength', auth.password_strength_view, name='password_strength_view'),
    path('api/auth/refresh', auth.jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', auth.jwt_logout_view, name='jwt_logout_view'),

    # Two-factor authentication
    path('api/auth/2fa/setup', profile.twofa_setup_view, name='twofa_setup_view'),
    path('api/auth/2fa/enable', profile.twofa_enable_view, name='twofa_enable_view'),
    path('api/auth/2fa/verify', profile.twofa_verify_view, name='twofa_verify_view'),
    path('api/auth/2fa/disable', profile.twofa_disable_view, name='twofa_disable_view'),

    # Profile
    path('api/user/profile', profile.profile_view, name='profile_view'),
    path('api/user/profile/update', profile.profile_update_view, name='profile_update_view'),
    path('api/user/role', profile.update_role_view, name='update_role_view'),

    # Doctor directory
    path('api/doctors', doctors.search_doctors_view, name='search_doctors_view'),
    path('api/doctors/filters', doctors.doctor_filters_view, name='doctor_filters_view'),
    path('api/doctors/me', doctors.my_doctor_profile_view, name='my_doctor_profile_view'),
    path('api/doctors/<int:pk>', doctors.doctor_detail_view, name='doctor_detail_view'),

    # Appointments
    path('api/appointments', appointments.list_appointments_view, name='list_appointments_view'),
    path('api/appointments/request', appointments.request_appointment_view, name='request_appointment_view'),
    path('api/appointments/<int:pk>', appointments.appointment_detail_view, name='appointment_detail_view'),
    path('api/appointments/<int:pk>/status', appointments.appointment_status_view, name='appointment_status_view'),

    # Medical records
    path('api/records', records.list_records_view, name='list_records_view'),
    path('api/records/upload', records.upload_record_view, name='upload_record_view'),
    path('api/records/storage', records.storage_usage_view, name='storage_usage_view'),
    path('api/records/<int:pk>', records.record_detail_view, name='record_detail_view'),
    path('api/records/<int:pk>/download', records.download_record_view, name='download_record_view'),
    path('api/records/<int:pk>/verify', records.verify_record_view, name='verify_record_view'),

    # Wallet
    path('api/wallet', wallet.wallet_view, name='wallet_view'),
    path('api/wallet/create', wallet.create_wallet_view, name='create_wallet_view'),
    path('api/wallet/backup', wallet.wallet_backup_view, name='wallet_backup_view'),

    # Support chat
    path('api/chat', chat.chat_view, name='chat_view'),
]
