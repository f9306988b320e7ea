"""Flask application exposing the hafalan/tilawah progress API.

This module wires together the configuration, database models, logging
middleware and route definitions. The UI (teacher and parent screens) calls
these JSON endpoints; every response produced through
:class:`services.StudentService` carries the user-facing ``notifications``
emitted while handling the request.

Endpoints:

* ``GET /api/students?search=&grade=&teacher=`` – student list, filtered
  only. ``grade`` and ``teacher`` may be repeated.
* ``GET /api/dashboard?search=&grade=&teacher=`` – same filters, ranked by
  hafalan progress.
* ``GET /api/filters`` – distinct class labels and teachers for the filter
  panel.
* ``GET|PUT|DELETE /api/students/<id>`` and ``POST /api/students`` –
  student maintenance.
* ``GET|POST /api/students/<id>/entries`` – lesson history and recording a
  new lesson.
"""

from __future__ import annotations

import os
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from flask import Flask, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import BadRequest, BadGateway, HTTPException, NotFound

from app_logging import get_logger, get_request_id
from config import Config
from models import db
from progress import ENTRY_TYPES, MAX_PAGE, TILAWAH, parse_page
from request_logging_middleware import init_request_logging
from services import STUDENT_FIELDS, Notification, StudentService
from store import RowStore, StoreError
from student_filters import StudentFilterState

_logger = get_logger("hafalan.app")

REQUIRED_STUDENT_FIELDS = ("name", "group_name", "teacher")


def _service() -> StudentService:
    """Return the service for the current request, collecting its notifications."""
    if "service" not in g:
        g.notifications = []
        g.service = StudentService(RowStore(), notify=g.notifications.append)
    return g.service


def _respond(payload: Mapping[str, Any], status: int = 200):
    body = dict(payload)
    body["notifications"] = [asdict(n) for n in g.get("notifications", [])]
    return jsonify(body), status


def _jsonable(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in row.items()
    }


def _json_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Missing JSON payload')
    return data


def _filter_state() -> StudentFilterState:
    return StudentFilterState(
        search_term=request.args.get('search', ''),
        selected_grades=request.args.getlist('grade'),
        selected_groups=request.args.getlist('teacher'),
    )


def _student_values(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    values = {key: data[key] for key in STUDENT_FIELDS if key in data}
    for key, value in values.items():
        if value is not None and not isinstance(value, str):
            raise BadRequest(f'{key} must be a string')
    required = REQUIRED_STUDENT_FIELDS
    if partial:
        required = [key for key in REQUIRED_STUDENT_FIELDS if key in values]
    missing = [key for key in required if not (values.get(key) or '').strip()]
    if missing:
        raise BadRequest(f"{', '.join(missing)} required")
    return values


def _entry_values(student_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a lesson payload the same way the progress form does."""
    date_str = data.get('date')
    if not date_str:
        raise BadRequest('Date is required')
    try:
        entry_date = datetime.strptime(str(date_str), '%Y-%m-%d').date()
    except ValueError:
        raise BadRequest('Invalid date format, must be YYYY-MM-DD')
    entry_type = data.get('type')
    if entry_type not in ENTRY_TYPES:
        raise BadRequest(f"type must be one of {', '.join(ENTRY_TYPES)}")
    surah_or_jilid = str(data.get('surah_or_jilid') or '').strip()
    if not surah_or_jilid:
        raise BadRequest('Please enter surah or jilid')
    ayat_or_page = str(data.get('ayat_or_page') or '').strip()
    if not ayat_or_page:
        raise BadRequest('Please enter ayat or page')
    if entry_type == TILAWAH:
        try:
            parse_page(ayat_or_page)
        except ValueError:
            raise BadRequest(f'Page must be between -{MAX_PAGE} and {MAX_PAGE}')
    return {
        'student_id': student_id,
        'date': entry_date,
        'type': entry_type,
        'surah_or_jilid': surah_or_jilid,
        'ayat_or_page': ayat_or_page,
        'notes': data.get('notes') or None,
    }


def _require_student(student_id: str):
    # A FetchError propagates to the StoreError handler (503), not a 404.
    student = _service().find_student(student_id)
    if student is None:
        raise NotFound('Student not found')
    return student


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Application factory used by both the server and tests.

    ``overrides`` is applied on top of :class:`config.Config` before the
    database is initialised, so tests can point the app at an in-memory
    database. Tables are created on start-up if they do not exist.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    app.json.ensure_ascii = False
    db.init_app(app)
    init_request_logging(app)

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            # Start anyway; requests will report the database as unavailable.
            _logger.warning("Database unavailable during table creation: %s", exc)

    @app.route('/health')
    def healthcheck():
        return jsonify({'status': 'ok'}), 200

    @app.route('/api/students', methods=['GET'])
    def api_list_students():
        service = _service()
        students = service.apply_filters(service.load_students(), _filter_state())
        return _respond({'students': [s.to_dict() for s in students]})

    @app.route('/api/dashboard', methods=['GET'])
    def api_dashboard():
        service = _service()
        students = service.apply_filters(service.load_students(), _filter_state())
        ranked = service.rank_by_progress(students)
        return _respond({'students': [s.to_dict() for s in ranked]})

    @app.route('/api/filters', methods=['GET'])
    def api_filter_options():
        service = _service()
        grades, teachers = service.filter_options(service.load_students())
        return _respond({'grades': grades, 'teachers': teachers})

    @app.route('/api/students', methods=['POST'])
    def api_create_student():
        values = _student_values(_json_payload())
        student = _service().create_student(values)
        if student is None:
            return _respond({'student': None}, 502)
        return _respond({'student': _jsonable(student)}, 201)

    @app.route('/api/students/<student_id>', methods=['GET'])
    def api_get_student(student_id: str):
        student = _require_student(student_id)
        return _respond({'student': student.to_dict()})

    @app.route('/api/students/<student_id>', methods=['PUT'])
    def api_update_student(student_id: str):
        values = _student_values(_json_payload(), partial=True)
        _require_student(student_id)
        if not _service().update_student(student_id, values):
            return _respond({'updated': False}, 502)
        return _respond({'updated': True})

    @app.route('/api/students/<student_id>', methods=['DELETE'])
    def api_delete_student(student_id: str):
        _require_student(student_id)
        if not _service().delete_student(student_id):
            return _respond({'deleted': False}, 502)
        return _respond({'deleted': True})

    @app.route('/api/students/<student_id>/entries', methods=['GET'])
    def api_list_entries(student_id: str):
        entries = _service().get_progress_entries(student_id)
        return _respond({'entries': [_jsonable(e) for e in entries]})

    @app.route('/api/students/<student_id>/entries', methods=['POST'])
    def api_add_entry(student_id: str):
        values = _entry_values(student_id, _json_payload())
        _require_student(student_id)
        outcome = _service().submit_progress_entry(values)
        body = outcome.to_dict()
        if outcome.entry is not None:
            body['entry'] = _jsonable(outcome.entry)
        return _respond(body, 201 if outcome else BadGateway.code)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        response = jsonify({
            'status': error.code,
            'title': error.name,
            'detail': error.description,
            'request_id': get_request_id(),
            'notifications': [asdict(n) for n in g.get('notifications', [])],
        })
        response.status_code = error.code or 500
        return response

    def handle_db_error(error):
        _logger.error("Database operation failed: %s", error)
        notifications = list(g.get('notifications', []))
        notifications.append(Notification(
            'Error', 'Database temporarily unavailable. Please try again later.',
            variant='destructive'))
        response = jsonify({
            'status': 503,
            'title': 'Service Unavailable',
            'detail': 'Database temporarily unavailable',
            'request_id': get_request_id(),
            'notifications': [asdict(n) for n in notifications],
        })
        response.status_code = 503
        return response

    app.register_error_handler(SQLAlchemyError, handle_db_error)
    app.register_error_handler(StoreError, handle_db_error)

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8000))
    create_app().run(host='0.0.0.0', port=port, debug=True)
