"""
Error taxonomy for the portal and the unified API exception handler.

Every network-boundary failure is turned into one of these exceptions at
the call site.  Views let them propagate; ``api_exception_handler`` turns
them into the ``{'ok': False, 'error': {...}}`` envelope so the front end
can show a toast without special-casing status codes.
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for failures the portal reports to the user."""

    code = 'portal_error'
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = '', *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UpstreamError(PortalError):
    """Transport failure or non-2xx answer from an upstream REST service."""

    code = 'upstream_error'
    http_status = status.HTTP_502_BAD_GATEWAY


class EnvelopeError(UpstreamError):
    """Upstream answered 2xx with a body that is not the declared shape."""

    code = 'bad_envelope'


class PatientCreateError(PortalError):
    """Creating the patient master record failed; the submission is aborted."""

    code = 'patient_create_failed'
    http_status = status.HTTP_502_BAD_GATEWAY


class SubmissionError(PortalError):
    """A clinic, hospital or isolation save failed upstream."""

    code = 'submission_failed'
    http_status = status.HTTP_502_BAD_GATEWAY


class FormInvalid(PortalError):
    """Client-side validation rejected the form before anything was sent."""

    code = 'form_invalid'
    http_status = status.HTTP_400_BAD_REQUEST


class AuthError(PortalError):
    """Login or session refresh failed; auth state has been cleared."""

    code = 'auth_failed'
    http_status = status.HTTP_401_UNAUTHORIZED


def api_exception_handler(exc, context):
    if isinstance(exc, PortalError):
        if isinstance(exc, UpstreamError):
            request = context.get('request')
            logger.warning('upstream failure on %s: %s (status=%s)',
                           getattr(request, 'path', '?'), exc.message, exc.status_code)
        return Response({'ok': False, 'error': {'code': exc.code, 'message': exc.message}},
                        status=exc.http_status)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error', exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
