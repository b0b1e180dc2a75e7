from __future__ import annotations

import hashlib
import json
from math import atan2, cos, radians, sin, sqrt
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Q

from portal.models import DoctorProfile

ALL_SPECIALTIES = 'All Specialties'
ALL_LOCATIONS = 'All Locations'

SPECIALTIES = [ALL_SPECIALTIES] + [value for value, _ in DoctorProfile.SPECIALTY_CHOICES]

LOCATIONS = [
    ALL_LOCATIONS,
    'New York, NY',
    'Boston, MA',
    'San Francisco, CA',
    'Chicago, IL',
    'Los Angeles, CA',
    'Houston, TX',
    'Miami, FL',
    'Seattle, WA',
]

SORT_RATING = 'rating'
SORT_EXPERIENCE = 'experience'
SORT_DISTANCE = 'distance'

EARTH_RADIUS_KM = 6371

CACHE_PREFIX = 'doctors'
CACHE_VERSION_KEY = 'doctors:version'


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    lat1, lng1, lat2, lng2 = map(radians, (lat1, lng1, lat2, lng2))
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(a), sqrt(1 - a))


def serialize_doctor(d: DoctorProfile, *, full: bool = False) -> dict:
    data = {
        'id': d.id,
        'name': d.name,
        'specialty': d.specialty,
        'location': {
            'address': d.address,
            'city': d.city,
            'state': d.state,
            'zipCode': d.zip_code,
            'lat': d.latitude,
            'lng': d.longitude,
        },
        'acceptingNewPatients': d.accepting_new_patients,
        'rating': float(d.rating),
        'reviewCount': d.review_count,
        'languages': d.languages,
        'education': d.education,
        'yearsOfExperience': d.years_of_experience,
        'isVerified': d.is_verified,
        'photoUrl': d.photo_url,
    }
    if full:
        data['bio'] = d.bio
        data['userId'] = d.user_id
    return data


def _location_filter(location: str) -> Optional[Q]:
    city, _, state = location.partition(',')
    city, state = city.strip(), state.strip()
    if not city:
        return None
    cond = Q(city__iexact=city)
    if state:
        cond &= Q(state__iexact=state)
    return cond


def search_doctors(*, q: Optional[str] = None, specialty: Optional[str] = None, location: Optional[str] = None,
                   accepting_only: bool = False, verified_only: bool = False, sort: str = SORT_RATING,
                   lat: Optional[float] = None, lng: Optional[float] = None, radius_km: Optional[float] = None,
                   page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[list[dict], int]:
    qs = DoctorProfile.objects.all()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(specialty__icontains=q))
    if specialty and specialty != ALL_SPECIALTIES:
        qs = qs.filter(specialty=specialty)
    if location and location != ALL_LOCATIONS:
        cond = _location_filter(location)
        if cond is not None:
            qs = qs.filter(cond)
    if accepting_only:
        qs = qs.filter(accepting_new_patients=True)
    if verified_only:
        qs = qs.filter(is_verified=True)

    if sort == SORT_EXPERIENCE:
        qs = qs.order_by('-years_of_experience', '-rating', 'id')
    else:
        qs = qs.order_by('-rating', '-years_of_experience', 'id')

    has_origin = lat is not None and lng is not None
    rows = []
    for d in qs:
        row = serialize_doctor(d)
        if has_origin:
            if d.latitude is None or d.longitude is None:
                if radius_km is not None or sort == SORT_DISTANCE:
                    continue
                row['distanceKm'] = None
            else:
                distance = round(haversine_km(lat, lng, d.latitude, d.longitude), 2)
                if radius_km is not None and distance > radius_km:
                    continue
                row['distanceKm'] = distance
        rows.append(row)

    if has_origin and sort == SORT_DISTANCE:
        rows.sort(key=lambda r: r['distanceKm'])

    total = len(rows)
    if page_size:
        page = page or 1
        start = (page - 1) * page_size
        rows = rows[start:start + page_size]
    return rows, total


def _cache_version() -> int:
    return cache.get_or_set(CACHE_VERSION_KEY, 1, None)


def cache_key(params: dict) -> str:
    digest = hashlib.sha1(json.dumps(params, sort_keys=True, default=str).encode()).hexdigest()
    return f"{CACHE_PREFIX}:v{_cache_version()}:{digest}"


def cached_search(params: dict) -> dict:
    key = cache_key(params)
    payload = cache.get(key)
    if payload is not None:
        return payload
    data, total = search_doctors(**params)
    page = params.get('page') or 1
    page_size = params.get('page_size') or total
    payload = {'ok': True, 'data': data, 'total': total,
               'pagination': {'total': total, 'page': page, 'pageSize': page_size}}
    cache.set(key, payload, settings.DIRECTORY_CACHE_SECONDS)
    return payload


def invalidate_directory_cache() -> None:
    try:
        cache.incr(CACHE_VERSION_KEY)
    except ValueError:
        cache.set(CACHE_VERSION_KEY, 2, None)


DOCTOR_EDITABLE_FIELDS = (
    'name', 'specialty', 'address', 'city', 'state', 'zip_code', 'latitude', 'longitude',
    'accepting_new_patients', 'languages', 'education', 'years_of_experience', 'photo_url', 'bio',
)


def update_doctor_profile(profile: DoctorProfile, changes: dict) -> DoctorProfile:
    fields = [f for f in DOCTOR_EDITABLE_FIELDS if f in changes]
    for f in fields:
        setattr(profile, f, changes[f])
    if fields:
        profile.save(update_fields=fields + ['updated_at'])
        invalidate_directory_cache()
    return profile
