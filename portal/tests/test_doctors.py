import pytest
from django.urls import reverse

from portal.models import DoctorProfile
from portal.services.doctors import LOCATIONS, SPECIALTIES, haversine_km, search_doctors

pytestmark = pytest.mark.django_db


def names(resp):
    return [d['name'] for d in resp.data['data']]


def test_search_default_sorts_by_rating(patient_client, directory):
    r = patient_client.get(reverse('search_doctors_view'))
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert names(r) == ['Dr. Jessica Taylor', 'Dr. Sarah Johnson', 'Dr. Emily Rodriguez']
    assert r.data['total'] == 3
    row = r.data['data'][0]
    assert row['location'] == {'address': '', 'city': 'Chicago', 'state': 'IL', 'zipCode': '',
                               'lat': 41.8858, 'lng': -87.6229}
    assert row['rating'] == 4.9
    assert 'distanceKm' not in row


def test_search_by_experience(patient_client, directory):
    r = patient_client.get(reverse('search_doctors_view'), {'sort': 'experience'})
    assert names(r) == ['Dr. Sarah Johnson', 'Dr. Emily Rodriguez', 'Dr. Jessica Taylor']


def test_search_text_matches_name_or_specialty(patient_client, directory):
    assert names(patient_client.get(reverse('search_doctors_view'), {'q': 'derma'})) == ['Dr. Emily Rodriguez']
    assert names(patient_client.get(reverse('search_doctors_view'), {'q': 'JOHNSON'})) == ['Dr. Sarah Johnson']


def test_search_filters(patient_client, directory):
    url = reverse('search_doctors_view')
    assert names(patient_client.get(url, {'specialty': 'Pediatrician'})) == ['Dr. Jessica Taylor']
    assert len(names(patient_client.get(url, {'specialty': 'All Specialties'}))) == 3
    assert names(patient_client.get(url, {'location': 'Boston, MA'})) == ['Dr. Emily Rodriguez']
    assert len(names(patient_client.get(url, {'location': 'All Locations'}))) == 3
    assert 'Dr. Emily Rodriguez' not in names(patient_client.get(url, {'accepting': '1'}))
    assert 'Dr. Jessica Taylor' not in names(patient_client.get(url, {'verified': '1'}))


def test_search_distance(patient_client, directory):
    # from Times Square
    r = patient_client.get(reverse('search_doctors_view'),
                           {'lat': 40.758, 'lng': -73.9855, 'sort': 'distance', 'radiusKm': 400})
    assert names(r) == ['Dr. Sarah Johnson', 'Dr. Emily Rodriguez']
    first, second = r.data['data']
    assert first['distanceKm'] < 2
    assert 250 < second['distanceKm'] < 320
    assert round(second['distanceKm'], 2) == second['distanceKm']


def test_distance_sort_requires_origin(patient_client, directory):
    r = patient_client.get(reverse('search_doctors_view'), {'sort': 'distance'})
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'


def test_search_pagination(patient_client, directory):
    r = patient_client.get(reverse('search_doctors_view'), {'page': 2, 'pageSize': 2})
    assert names(r) == ['Dr. Emily Rodriguez']
    assert r.data['pagination'] == {'total': 3, 'page': 2, 'pageSize': 2}


def test_page_size_alone_returns_first_page(patient_client, directory):
    r = patient_client.get(reverse('search_doctors_view'), {'pageSize': 2})
    assert names(r) == ['Dr. Jessica Taylor', 'Dr. Sarah Johnson']
    assert r.data['pagination'] == {'total': 3, 'page': 1, 'pageSize': 2}


def test_search_is_cached_until_profile_changes(patient_client, doctor_client, doctor_user, directory):
    url = reverse('search_doctors_view')
    before = names(patient_client.get(url, {'q': 'Dr.'}))
    DoctorProfile.objects.filter(name='Dr. Sarah Johnson').update(name='Dr. Sarah Smith')
    # stale: served from cache
    assert names(patient_client.get(url, {'q': 'Dr.'})) == before

    r = doctor_client.post(reverse('my_doctor_profile_view'), {'acceptingNewPatients': False}, format='json')
    assert r.status_code == 200
    # the doctor's own update invalidates the directory
    assert 'Dr. Sarah Smith' in names(patient_client.get(url, {'q': 'Dr.'}))


def test_filters(patient_client):
    r = patient_client.get(reverse('doctor_filters_view'))
    assert r.data['specialties'][0] == 'All Specialties'
    assert r.data['locations'][0] == 'All Locations'
    assert 'Dentist' in r.data['specialties']
    assert r.data['locations'] == LOCATIONS
    assert len(SPECIALTIES) == 11


def test_detail(patient_client, directory):
    r = patient_client.get(reverse('doctor_detail_view', args=[directory[0].id]))
    assert r.status_code == 200
    assert r.data['data']['name'] == 'Dr. Sarah Johnson'
    assert 'bio' in r.data['data']

    r = patient_client.get(reverse('doctor_detail_view', args=[99999]))
    assert r.status_code == 404


def test_doctor_profile_update_is_doctor_only(patient_client, doctor_client):
    r = patient_client.post(reverse('my_doctor_profile_view'), {'bio': 'x'}, format='json')
    assert r.status_code == 403

    r = doctor_client.post(reverse('my_doctor_profile_view'),
                           {'bio': '<script>x</script>Heart doctor', 'yearsOfExperience': 10, 'zipCode': '02110'},
                           format='json')
    assert r.status_code == 200
    assert r.data['data']['bio'] == 'xHeart doctor'
    assert r.data['data']['yearsOfExperience'] == 10
    assert r.data['data']['location']['zipCode'] == '02110'


def test_haversine_known_distance():
    # New York to Boston is roughly 306 km
    assert 300 < haversine_km(40.7128, -74.0060, 42.3601, -71.0589) < 310
    assert haversine_km(1, 1, 1, 1) == 0


def test_search_without_coordinates_is_skipped_for_radius(directory):
    DoctorProfile.objects.create(name='Dr. Nowhere', specialty='Dentist')
    rows, total = search_doctors(lat=40.758, lng=-73.9855, radius_km=10000)
    assert 'Dr. Nowhere' not in [r['name'] for r in rows]
    rows, total = search_doctors(lat=40.758, lng=-73.9855)
    nowhere = [r for r in rows if r['name'] == 'Dr. Nowhere'][0]
    assert nowhere['distanceKm'] is None
