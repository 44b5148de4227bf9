import json
from datetime import date

import numpy as np
import pytest

from faceroll import globals as app_globals
from faceroll.models import AlreadyRecordedError

from conftest import noisy_samples, random_vector

V = random_vector(100)
W = random_vector(200)


@pytest.fixture
def enrolled(client, roster):
    for student_id, base, seed in (('S001', V, 1), ('S002', W, 2)):
        response = client.post(
            f'/api/students/{student_id}/enroll-face',
            json={'descriptors': noisy_samples(base, 6, seed=seed)},
        )
        assert response.status_code == 200
    return roster


def probe_of(base, seed=50):
    return np.mean(noisy_samples(base, 3, seed=seed), axis=0).tolist()


def recognize(client, descriptor, class_id='7A', **extra):
    return client.post('/api/attendance/recognize', json={'classId': class_id, 'descriptor': descriptor, **extra})


def mark(client, student_id, class_id='7A', **extra):
    return client.post('/api/attendance/mark', json={'studentId': student_id, 'classId': class_id, **extra})


def test_probe_is_recognized_within_class_roster(client, enrolled):
    response = recognize(client, probe_of(V))
    assert response.status_code == 200
    body = response.get_json()
    assert body['match'] == {
        'id': 'S001',
        'fullName': 'An Nguyen',
        'studentNumber': '0001',
        'gender': 'M',
        'className': 'Class 7A',
    }
    assert 0 <= body['distance'] <= 0.55
    assert 'attendance' not in body


def test_unknown_face(client, enrolled):
    body = recognize(client, random_vector(999).tolist()).get_json()
    assert body['match'] is None
    assert body['distance'] > 0.55


def test_student_id_narrows_the_search(client, enrolled):
    body = recognize(client, probe_of(V), studentId='S002').get_json()
    assert body['match'] is None
    assert recognize(client, probe_of(V), studentId='S001').get_json()['match']['id'] == 'S001'
    assert recognize(client, probe_of(V), studentId='S100').status_code == 404


def test_recognize_then_mark_then_conflict(client, db, enrolled):
    match = recognize(client, probe_of(V)).get_json()['match']
    response = mark(client, match['id'], status='PRESENT')
    assert response.status_code == 200
    assert response.get_json()['attendance']['status'] == 'PRESENT'

    again = recognize(client, probe_of(V, seed=51))
    assert again.status_code == 409
    assert again.get_json()['match']['id'] == 'S001'

    second_mark = mark(client, 'S001')
    assert second_mark.status_code == 409

    with db.get_connection() as conn:
        count = conn.execute("SELECT COUNT(*) FROM attendance WHERE student_id = 'S001'").fetchone()[0]
    assert count == 1


def test_target_student_already_recorded_is_a_conflict_before_matching(client, enrolled):
    assert mark(client, 'S002').status_code == 200

    # the probe belongs to S001, so matching alone would find nobody
    response = recognize(client, probe_of(V), studentId='S002')
    assert response.status_code == 409
    assert response.get_json()['match']['id'] == 'S002'
    assert response.get_json()['match']['fullName'] == 'Binh Tran'


def test_recognize_can_mark_directly(client, db, enrolled):
    body = recognize(client, probe_of(W), mark=True).get_json()
    assert body['match']['id'] == 'S002'
    assert body['attendance']['status'] == 'PRESENT'
    assert body['attendance']['source'] == 'face'
    assert body['attendance']['classId'] == '7A'
    assert body['attendance']['confidence'] == pytest.approx(body['distance'])
    assert db.get_attendance('S002')['status'] == 'PRESENT'


def test_legacy_vector_templates_are_still_matched(client, db, roster):
    db.save_face_template('S003', json.dumps(V.tolist()))
    body = recognize(client, probe_of(V)).get_json()
    assert body['match']['id'] == 'S003'


def test_recognize_validation_and_lookup_errors(client, enrolled):
    assert recognize(client, []).status_code == 400
    assert recognize(client, [0.1, 'x']).status_code == 400
    assert recognize(client, probe_of(V), class_id='').status_code == 400
    assert recognize(client, probe_of(V), class_id='9Z').status_code == 404
    # 7B has a student but nobody enrolled
    assert recognize(client, probe_of(V), class_id='7B').status_code == 404


def test_manual_mark_statuses(client, roster):
    response = mark(client, 'S001')
    assert response.status_code == 200
    attendance = response.get_json()['attendance']
    assert attendance['status'] == 'PRESENT'
    assert attendance['source'] == 'manual'
    assert attendance['date'] == date.today().isoformat()

    assert mark(client, 'S002', status='sick').get_json()['attendance']['status'] == 'SICK'
    assert mark(client, 'S003', status='LATE').status_code == 400


def test_manual_mark_lookup_errors(client, roster):
    assert mark(client, 'S100', class_id='7A').status_code == 404
    assert mark(client, 'NOPE').status_code == 404
    assert mark(client, 'S001', class_id='9Z').status_code == 404
    assert mark(client, '', class_id='7A').status_code == 400
    assert client.post('/api/attendance/mark', json={'studentId': 'S001'}).status_code == 400
    assert client.get('/api/attendance/mark').status_code == 405


def test_storage_constraint_is_reported_as_conflict(app, roster, monkeypatch):
    tracker = app_globals.attendance_tracker
    db = app_globals.database
    student = db.get_student('S001')
    class_row = db.get_class('7A')
    tracker.mark(student, class_row)

    # a concurrent request that passed the pre-check before the first write landed
    monkeypatch.setattr(tracker, 'existing', lambda *args, **kwargs: None)
    with pytest.raises(AlreadyRecordedError):
        tracker.mark(student, class_row)


def test_class_roster_for_a_day(client, enrolled):
    mark(client, 'S002', status='PERMIT')
    response = client.get('/api/attendance?classId=7A')
    assert response.status_code == 200
    body = response.get_json()
    assert body['class'] == {'id': '7A', 'name': 'Class 7A'}
    assert body['date'] == date.today().isoformat()

    students = {student['id']: student for student in body['students']}
    assert set(students) == {'S001', 'S002', 'S003'}
    assert students['S001']['hasFace'] is True
    assert students['S003']['hasFace'] is False
    assert students['S001']['status'] is None
    assert students['S002']['status'] == 'PERMIT'
    assert len(students['S002']['checkInTime']) == 5

    past = client.get('/api/attendance?classId=7A&date=2020-01-01').get_json()
    assert all(student['status'] is None for student in past['students'])


def test_class_roster_errors(client, roster):
    assert client.get('/api/attendance').status_code == 400
    assert client.get('/api/attendance?classId=7A&date=not-a-date').status_code == 400
    assert client.get('/api/attendance?classId=9Z').status_code == 404


def test_status_endpoint(client, enrolled):
    body = client.get('/api/status').get_json()
    assert body['status'] == 'ok'
    assert body['enrolledFaces'] == 2
    assert body['matchThreshold'] == 0.55
