"""
Tests for application_exception_handler.
"""

from __future__ import annotations

import pytest
from rest_framework import exceptions as drf_exceptions

from core.exception_handler import application_exception_handler, status_for
from core.exceptions import (
    BackendError,
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)


class TestStatusFor:
    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (ValidationError("bad"), 400),
            (NotFoundError("missing"), 404),
            (ConflictError("clash"), 409),
            (TransactionConflictError("race"), 409),
            (BackendError("down"), 503),
            (BaseApplicationError("other"), 400),
        ],
    )
    def test_maps_error_kinds(self, exc, expected):
        assert status_for(exc) == expected


class TestApplicationExceptionHandler:
    def test_renders_application_error(self):
        exc = NotFoundError("Patient missing", error_code="PATIENT_NOT_FOUND", details={"pk": "1"})

        response = application_exception_handler(exc, {"view": None})

        assert response.status_code == 404
        assert response.data == {
            "error": "Patient missing",
            "error_code": "PATIENT_NOT_FOUND",
            "details": {"pk": "1"},
        }

    def test_backend_error_hides_details(self):
        exc = BackendError("Store unavailable", details={"original_error": "password rejected"})

        response = application_exception_handler(exc, {"view": None})

        assert response.status_code == 503
        assert "details" not in response.data

    def test_delegates_framework_errors(self):
        response = application_exception_handler(drf_exceptions.NotFound(), {"view": None})

        assert response.status_code == 404

    def test_unknown_errors_left_to_django(self):
        assert application_exception_handler(RuntimeError("boom"), {"view": None}) is None
