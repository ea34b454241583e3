from __future__ import annotations

from typing import Any, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import BadRequest, HTTPException, Unauthorized

from ..common.datetime_utils import parse_iso_datetime
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    NotEnrolled,
    NotFoundError,
    OutsideGeofence,
    ValidationError,
)
from ..sessions.model import AttendanceRecord, AttendanceSession
from .model import Caller


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def session_to_dict(session: AttendanceSession) -> dict:
    return {
        "session_id": session.session_id,
        "course_id": session.course_id,
        "instructor_id": session.instructor_id,
        "start_time": _iso(session.window.start),
        "end_time": _iso(session.window.end),
        "fence": {
            "lat": session.fence.center.latitude,
            "lon": session.fence.center.longitude,
            "radius_m": session.fence.radius_m,
        },
        "state": session.state.value,
        "late_after_minutes": session.late_after_minutes,
        "closed_at": _iso(session.closed_at),
        "enrolled": len(session.roster),
    }


def record_to_dict(record: AttendanceRecord) -> dict:
    data: dict[str, Any] = {
        "session_id": record.session_id,
        "student_id": record.student_id,
        "status": record.status.value,
        "marked_at": _iso(record.marked_at),
        "location": None,
        "override": None,
    }
    if record.location:
        data["location"] = {"lat": record.location.latitude, "lon": record.location.longitude}
    if record.override:
        data["override"] = {
            "by": record.override.by,
            "reason": record.override.reason,
            "at": _iso(record.override.at),
        }
    return data


def _status_for(error: DomainError) -> int:
    if isinstance(error, OutsideGeofence):
        return 422
    if isinstance(error, NotEnrolled):
        return 403
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    return 400


def register(app: Flask, container: Container) -> None:
    service = container.marking_service

    def current_caller() -> Caller:
        """Identity forwarded by the upstream auth gateway."""
        user_id = request.headers.get("X-User-Id", "")
        role = request.headers.get("X-User-Role", "")
        try:
            return Caller(user_id=int(user_id), role=Role(role.strip().lower()))
        except ValueError:
            raise Unauthorized("Missing or invalid caller identity") from None

    def json_body() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise BadRequest("Request body must be a JSON object")
        return data

    def optional_datetime(data: dict, field: str):
        value = data.get(field)
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise BadRequest(f"{field} must be an ISO-8601 string")
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise BadRequest(f"{field} must be an ISO-8601 string") from None

    def required(data: dict, field: str):
        if data.get(field) is None:
            raise BadRequest(f"Missing required field: {field}")
        return data[field]

    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError):
        payload: dict[str, Any] = {
            "error": True,
            "kind": type(error).__name__,
            "message": str(error),
        }
        if isinstance(error, OutsideGeofence):
            payload["distance_m"] = round(error.distance_m, 1)
            payload["radius_m"] = error.radius_m
        return jsonify(payload), _status_for(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"error": True, "kind": error.name, "message": error.description}), error.code

    @app.route("/health", methods=["GET"], endpoint="health")
    def health():
        result = container.health_check()
        return jsonify(result), 200 if result["status"] == "healthy" else 503

    @app.route("/api/sessions", methods=["POST"], endpoint="open_session")
    def open_session():
        data = json_body()
        fence = required(data, "fence")
        if not isinstance(fence, dict):
            raise BadRequest("fence must be an object with lat, lon and radius_m")
        try:
            session = service.open_session(
                current_caller(),
                course_id=int(required(data, "course_id")),
                instructor_id=int(data["instructor_id"]) if data.get("instructor_id") is not None else None,
                start_time=optional_datetime(data, "start_time"),
                duration_minutes=int(data["duration_minutes"]) if data.get("duration_minutes") is not None else None,
                late_after_minutes=(
                    int(data["late_after_minutes"]) if data.get("late_after_minutes") is not None else None
                ),
                latitude=float(required(fence, "lat")),
                longitude=float(required(fence, "lon")),
                radius_m=float(required(fence, "radius_m")),
            )
        except (TypeError, ValueError) as e:
            raise BadRequest(f"Invalid session payload: {e}") from None
        return jsonify(session_to_dict(session)), 201

    @app.route("/api/sessions/<int:session_id>", methods=["GET"], endpoint="get_session")
    def get_session(session_id: int):
        session = service.get_session(current_caller(), session_id)
        return jsonify(session_to_dict(session))

    @app.route("/api/sessions/<int:session_id>", methods=["DELETE"], endpoint="cancel_session")
    def cancel_session(session_id: int):
        service.cancel_session(current_caller(), session_id)
        return "", 204

    @app.route("/api/sessions/<int:session_id>/marks", methods=["POST"], endpoint="mark_attendance")
    def mark_attendance(session_id: int):
        data = json_body()
        try:
            latitude = float(required(data, "lat"))
            longitude = float(required(data, "lon"))
        except (TypeError, ValueError):
            raise BadRequest("lat and lon must be numbers") from None

        result = service.mark(current_caller(), session_id, latitude=latitude, longitude=longitude)
        body = record_to_dict(result.record)
        body["distance_m"] = round(result.distance_m, 1)
        return jsonify(body), 201

    @app.route(
        "/api/sessions/<int:session_id>/records/<int:student_id>",
        methods=["PUT"],
        endpoint="override_record",
    )
    def override_record(session_id: int, student_id: int):
        data = json_body()
        record = service.override(
            current_caller(),
            session_id,
            student_id,
            status=str(required(data, "status")).strip().upper(),
            reason=data.get("reason"),
        )
        return jsonify(record_to_dict(record))

    @app.route("/api/sessions/<int:session_id>/close", methods=["POST"], endpoint="close_session")
    def close_session(session_id: int):
        session = service.close_early(current_caller(), session_id)
        return jsonify(session_to_dict(session))

    @app.route("/api/sessions/<int:session_id>/report", methods=["GET"], endpoint="session_report")
    def session_report(session_id: int):
        report = service.report(current_caller(), session_id)
        return jsonify(
            {
                "session_id": report.session_id,
                "total": report.total,
                "marked": report.marked_count,
                "records": [record_to_dict(r) for r in report.records],
            }
        )

    @app.route("/api/sessions/<int:session_id>/records/me", methods=["GET"], endpoint="my_record")
    def my_record(session_id: int):
        record = service.student_record(current_caller(), session_id)
        return jsonify(record_to_dict(record))
