"""
Project-wide pytest configuration.

This module adjusts settings for tests and auto-marks tests by filename.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Adjust settings before tests run."""
    from django.conf import settings

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Retry conflicts without sleeping
    settings.BILLING = {**settings.BILLING, "CONFLICT_BACKOFF_SECONDS": 0}


def pytest_collection_modifyitems(items):
    """
    Mark each test unit, integration or e2e from its file name.

    Markers set explicitly on a test win. Files not listed are treated as
    integration tests, since most billing tests touch the database.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_distribution.py",
        "test_deletion.py",
        "test_reports.py",
        "test_reconciliation.py",
        "test_async_api.py",
        "test_locking.py",
        "test_atomic.py",
        "test_exception_handler.py",
        "test_commands.py",
        "test_admin.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_derivation.py",
        "test_types.py",
        "test_exceptions.py",
        "test_decorators.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = item.path.name

        if filename in e2e_patterns:
            item.add_marker(pytest.mark.e2e)
        elif filename in integration_patterns:
            item.add_marker(pytest.mark.integration)
        elif filename in unit_patterns:
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
