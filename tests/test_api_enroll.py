import base64
import json
import os

import numpy as np

from conftest import noisy_samples, png_data_url, random_vector


def enroll(client, student_id, descriptors, face_image=None):
    body = {'descriptors': descriptors}
    if face_image is not None:
        body['faceImage'] = face_image
    return client.post(f'/api/students/{student_id}/enroll-face', json=body)


def test_enroll_stores_mean_and_samples(client, db, roster):
    samples = noisy_samples(random_vector(1), 6, seed=2)
    response = enroll(client, 'S001', samples)

    assert response.status_code == 200
    body = response.get_json()
    assert body['id'] == 'S001'
    assert body['sampleCount'] == 6
    assert body['faceImageUrl'] is None

    stored = json.loads(db.get_face_template('S001'))
    np.testing.assert_allclose(stored['samples'], samples)
    np.testing.assert_allclose(stored['mean'], np.mean(stored['samples'], axis=0))


def test_enroll_with_photo_serves_it_back(app, client, roster):
    response = enroll(client, 'S001', [[0.1, 0.2], [0.3, 0.4]], png_data_url())
    assert response.status_code == 200
    url = response.get_json()['faceImageUrl']
    assert url.startswith('/uploads/') and url.endswith('.png')

    image = client.get(url)
    assert image.status_code == 200
    assert image.data.startswith(b'\x89PNG')

    status = client.get('/api/students/S001/face').get_json()
    assert status['hasFace'] is True
    assert status['templateKind'] == 'aggregated'
    assert status['sampleCount'] == 2
    assert status['faceImageUrl'] == url


def test_reenrolling_without_photo_keeps_previous_photo(client, roster):
    url = enroll(client, 'S001', [[0.1, 0.2]], png_data_url()).get_json()['faceImageUrl']
    response = enroll(client, 'S001', [[0.5, 0.5], [0.6, 0.6]])
    assert response.get_json()['faceImageUrl'] == url
    assert response.get_json()['sampleCount'] == 2


def test_only_fifteen_samples_are_kept(client, db, roster):
    samples = [[float(i), 1.0] for i in range(20)]
    response = enroll(client, 'S001', samples)
    assert response.status_code == 200
    assert response.get_json()['sampleCount'] == 15
    assert len(json.loads(db.get_face_template('S001'))['samples']) == 15


def test_mismatched_lengths_are_rejected_before_any_write(app, client, db, roster):
    response = enroll(client, 'S001', [[0.1, 0.2, 0.3], [0.1, 0.2]], png_data_url())
    assert response.status_code == 400
    assert 'error' in response.get_json()
    assert db.get_face_template('S001') is None
    upload_folder = app.config['UPLOAD_FOLDER']
    assert not os.path.isdir(upload_folder) or os.listdir(upload_folder) == []


def test_invalid_descriptor_payloads(client, roster):
    for descriptors in (None, [], [[]], [[0.1, 'x']], [[0.1, True]], 'abc', [0.1, 0.2]):
        assert enroll(client, 'S001', descriptors).status_code == 400


def test_invalid_photo(client, db, roster):
    assert enroll(client, 'S001', [[0.1]], 'data:image/gif;base64,R0lGOD').status_code == 400
    assert enroll(client, 'S001', [[0.1]], '').status_code == 400
    not_an_image = 'data:image/png;base64,' + base64.b64encode(b'hello world').decode()
    assert enroll(client, 'S001', [[0.1]], not_an_image).status_code == 400
    assert db.get_face_template('S001') is None


def test_oversized_photo(client, db, roster):
    big = 'data:image/jpeg;base64,' + base64.b64encode(b'\0' * (2 * 1024 * 1024 + 1)).decode()
    response = enroll(client, 'S001', [[0.1]], big)
    assert response.status_code == 413
    assert db.get_face_template('S001') is None


def test_unknown_student(app, client, roster):
    response = enroll(client, 'NOPE', [[0.1, 0.2]], png_data_url())
    assert response.status_code == 404
    upload_folder = app.config['UPLOAD_FOLDER']
    assert not os.path.isdir(upload_folder) or os.listdir(upload_folder) == []
    assert client.get('/api/students/NOPE/face').status_code == 404


def test_enroll_requires_post(client, roster):
    assert client.get('/api/students/S001/enroll-face').status_code == 405


def test_line_wrapped_base64_photo_is_accepted(client, roster):
    prefix, payload = png_data_url().split(',', 1)
    wrapped = '\r\n'.join(payload[i:i + 76] for i in range(0, len(payload), 76))
    response = enroll(client, 'S001', [[0.1, 0.2]], f'{prefix},{wrapped}')
    assert response.status_code == 200
    assert client.get(response.get_json()['faceImageUrl']).status_code == 200


def test_new_photo_replaces_previous_upload(app, client, roster):
    upload_folder = app.config['UPLOAD_FOLDER']
    first = enroll(client, 'S001', [[0.1, 0.2]], png_data_url()).get_json()['faceImageUrl']
    second = enroll(client, 'S001', [[0.3, 0.4]], png_data_url(width=16)).get_json()['faceImageUrl']

    assert first != second
    assert os.listdir(upload_folder) == [second.rsplit('/', 1)[1]]
    assert client.get(first).status_code == 404
    assert client.get(second).status_code == 200
