import json
import logging

from app_logging import JSONFormatter, redact_sensitive_data
from request_logging_middleware import HEADER_NAME


def test_health_endpoint(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok'}


def test_request_id_propagation(client):
    response = client.get('/health', headers={HEADER_NAME: 'test-id-123'})
    assert response.headers.get(HEADER_NAME) == 'test-id-123'


def test_malformed_request_id_is_replaced(client):
    response = client.get('/api/students', headers={HEADER_NAME: 'bad id ' + 'y' * 80})
    request_id = response.headers.get(HEADER_NAME)
    assert request_id
    assert ' ' not in request_id
    assert len(request_id) == 36


def test_request_id_generated_when_missing(client):
    response = client.get('/api/students')
    assert response.headers.get(HEADER_NAME)


def test_error_handler_returns_problem_details(client):
    response = client.get('/api/students/does-not-exist', headers={HEADER_NAME: 'abc'})
    data = response.get_json()
    assert response.status_code == 404
    assert data['status'] == 404
    assert data['title']
    assert data['detail'] == 'Student not found'
    assert data['request_id'] == 'abc'


def test_redaction_is_recursive_and_case_insensitive():
    data = {'Email': 'a@b.c', 'nested': [{'token': 'x', 'name': 'Ahmad'}]}
    assert redact_sensitive_data(data) == {
        'Email': '[REDACTED]',
        'nested': [{'token': '[REDACTED]', 'name': 'Ahmad'}],
    }


def test_json_formatter_promotes_known_fields():
    record = logging.LogRecord('hafalan.store', logging.ERROR, __file__, 1,
                               'store operation failed', None, None)
    record.table = 'students'
    record.operation = 'insert'
    record.phone = '0812'
    payload = json.loads(JSONFormatter().format(record))
    assert payload['msg'] == 'store operation failed'
    assert payload['table'] == 'students'
    assert payload['operation'] == 'insert'
    assert payload['extra_context'] == {'phone': '[REDACTED]'}
