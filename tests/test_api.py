import json

from store import FetchError, RowStore


def _create(client, name='Ahmad', group_name='3A', teacher='Hasan', **extra):
    payload = {'name': name, 'group_name': group_name, 'teacher': teacher}
    payload.update(extra)
    response = client.post('/api/students', json=payload)
    assert response.status_code == 201
    return response.get_json()['student']


def _record(client, student_id, **payload):
    body = {'date': '2024-05-01', 'type': 'hafalan', 'surah_or_jilid': 'An-Nas',
            'ayat_or_page': '1-6'}
    body.update(payload)
    return client.post(f'/api/students/{student_id}/entries', json=body)


def test_create_student_returns_row_and_notification(client):
    response = client.post('/api/students', json={'name': 'Ahmad', 'group_name': '3A',
                                                  'teacher': 'Hasan'})
    data = response.get_json()
    assert response.status_code == 201
    assert data['student']['name'] == 'Ahmad'
    assert data['notifications'] == [{'title': 'Success',
                                      'description': 'Student has been successfully added',
                                      'variant': 'default'}]


def test_create_student_requires_fields(client):
    response = client.post('/api/students', json={'name': 'Ahmad'})
    assert response.status_code == 400
    assert 'group_name' in response.get_json()['detail']


def test_student_list_filters_without_sorting(client):
    _create(client, 'Ahmad', '3A', 'Hasan')
    _create(client, 'Fatima', '3B', 'Aisha')
    umar = _create(client, 'Umar', '3A', 'Hasan')
    _record(client, umar['id'], surah_or_jilid='Al-Falaq')

    names = [s['name'] for s in client.get('/api/students?grade=3A').get_json()['students']]
    assert names == ['Ahmad', 'Umar']
    names = [s['name'] for s in client.get('/api/students?search=FAT').get_json()['students']]
    assert names == ['Fatima']


def test_dashboard_ranks_by_progress(client):
    ahmad = _create(client, 'Ahmad', '3A', 'Hasan')
    _create(client, 'Fatima', '3B', 'Aisha')
    umar = _create(client, 'Umar', '3A', 'Hasan')
    _record(client, ahmad['id'], surah_or_jilid='Al-Ikhlas')
    _record(client, umar['id'], surah_or_jilid='An-Nas')
    _record(client, umar['id'], surah_or_jilid='Al-Falaq', date='2024-05-02')

    data = client.get('/api/dashboard').get_json()
    assert [s['name'] for s in data['students']] == ['Umar', 'Ahmad', 'Fatima']
    assert data['students'][0]['hafalan_progress'] == {'total': 2, 'last_surah': 'Al-Falaq',
                                                        'percentage': 2}

    data = client.get('/api/dashboard?teacher=Hasan&teacher=Aisha&search=a').get_json()
    assert [s['name'] for s in data['students']] == ['Umar', 'Ahmad', 'Fatima']


def test_filter_options(client):
    _create(client, 'Ahmad', '3A', 'Hasan')
    _create(client, 'Fatima', '3B', 'Aisha')
    _create(client, 'Umar', '3A', 'Hasan')
    data = client.get('/api/filters').get_json()
    assert data['grades'] == ['3A', '3B']
    assert data['teachers'] == ['Hasan', 'Aisha']


def test_record_entry_and_history(client):
    student = _create(client)
    response = _record(client, student['id'], type='tilawah', surah_or_jilid='Jilid 3',
                       ayat_or_page='42', notes='lancar')
    data = response.get_json()
    assert response.status_code == 201
    assert data['entry_saved'] is True
    assert data['summary_updated'] is True
    assert data['entry']['date'] == '2024-05-01'

    detail = client.get(f"/api/students/{student['id']}").get_json()['student']
    assert detail['tilawah_progress'] == {'jilid': 'Jilid 3', 'page': 42, 'percentage': 42}

    entries = client.get(f"/api/students/{student['id']}/entries").get_json()['entries']
    assert [(e['type'], e['notes']) for e in entries] == [('tilawah', 'lancar')]


def test_record_entry_validation(client):
    student = _create(client)
    assert _record(client, student['id'], date='01/05/2024').status_code == 400
    assert _record(client, student['id'], type='murajaah').status_code == 400
    assert _record(client, student['id'], surah_or_jilid='  ').status_code == 400
    assert _record(client, student['id'], ayat_or_page='').status_code == 400
    response = client.post(f"/api/students/{student['id']}/entries", data='not json',
                           content_type='application/json')
    assert response.status_code == 400


def test_record_entry_for_unknown_student(client):
    assert _record(client, 'missing').status_code == 404


def test_update_and_delete_student(client):
    student = _create(client)
    response = client.put(f"/api/students/{student['id']}", json={'teacher': 'Yusuf'})
    assert response.status_code == 200
    assert client.get(f"/api/students/{student['id']}").get_json()['student']['teacher'] == 'Yusuf'

    assert client.put(f"/api/students/{student['id']}", json={'name': ''}).status_code == 400

    response = client.delete(f"/api/students/{student['id']}")
    assert response.get_json()['deleted'] is True
    assert client.get(f"/api/students/{student['id']}").status_code == 404
    assert client.delete(f"/api/students/{student['id']}").status_code == 404


def test_unicode_names_are_returned_verbatim(client):
    _create(client, name='عبد الله')
    response = client.get('/api/students')
    assert 'عبد الله' in response.get_data(as_text=True)
    assert json.loads(response.get_data(as_text=True))['students'][0]['name'] == 'عبد الله'


def test_oversized_tilawah_page_is_rejected(client):
    student = _create(client)
    response = _record(client, student['id'], type='tilawah', surah_or_jilid='Jilid 2',
                       ayat_or_page='99999999999999999999')
    assert response.status_code == 400
    assert response.get_json()['detail'] == 'Page must be between -9999 and 9999'
    entries = client.get(f"/api/students/{student['id']}/entries").get_json()['entries']
    assert entries == []


def test_student_routes_report_unavailable_store(client, monkeypatch):
    student = _create(client)

    def failing_select_one(self, table, **equals):
        raise FetchError('select failed', table=table, operation='select')

    monkeypatch.setattr(RowStore, 'select_one', failing_select_one)
    url = f"/api/students/{student['id']}"
    responses = [
        client.get(url),
        client.put(url, json={'teacher': 'Yusuf'}),
        client.delete(url),
        _record(client, student['id']),
    ]
    for response in responses:
        data = response.get_json()
        assert response.status_code == 503
        assert data['detail'] == 'Database temporarily unavailable'
        assert [n['variant'] for n in data['notifications']] == ['destructive']

    monkeypatch.undo()
    assert client.get(url).status_code == 200
    assert client.get(f"{url}/entries").get_json()['entries'] == []
