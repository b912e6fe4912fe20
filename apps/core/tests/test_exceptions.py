"""
Tests for the custom exception handler.
"""
import pytest
from rest_framework import exceptions as drf_exceptions

from apps.core.exceptions import (
    Conflict, InvalidOperation, NotFound, PermissionDenied, RBACException, custom_exception_handler,
)


@pytest.fixture
def context(rf):
    request = rf.post('/v1/roles')
    request.request_id = 'req-123'
    return {'request': request}


@pytest.mark.parametrize('exc_class, status_code, code', [
    (PermissionDenied, 403, 'PERMISSION_DENIED'),
    (InvalidOperation, 400, 'INVALID_OPERATION'),
    (Conflict, 409, 'CONFLICT'),
    (NotFound, 404, 'NOT_FOUND'),
])
def test_domain_errors_map_to_status(context, exc_class, status_code, code):
    response = custom_exception_handler(exc_class('nope', details={'slug': 'Teacher'}), context)

    assert response.status_code == status_code
    assert response.data == {
        'error': 'nope',
        'code': code,
        'details': {'slug': 'Teacher'},
        'request_id': 'req-123',
    }


def test_error_carries_message_and_details():
    exc = Conflict("Role 'Teacher' already exists")
    assert isinstance(exc, RBACException)
    assert exc.message == "Role 'Teacher' already exists"
    assert exc.details == {}
    assert str(exc) == exc.message


def test_drf_errors_keep_default_handling(context):
    response = custom_exception_handler(drf_exceptions.ValidationError({'slug': ['required']}), context)

    assert response.status_code == 400
    assert response.data['slug'] == ['required']
    assert response.data['request_id'] == 'req-123'


def test_unexpected_errors_become_500(context):
    response = custom_exception_handler(RuntimeError('database on fire'), context)

    assert response.status_code == 500
    assert response.data['error'] == 'Internal server error'
    assert 'database on fire' not in str(response.data)
