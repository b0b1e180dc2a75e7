"""Patient portal application for the TrustRx backend.

This package contains models, serializers, services, views and route
registrations implementing the API consumed by the TrustRx front-end.
"""
