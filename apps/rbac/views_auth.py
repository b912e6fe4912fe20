"""
Authentication API views.

Implements endpoints for:
- Login (email + password -> JWT)
- Token refresh
- Current user profile with resolved role
"""
import logging
from django.conf import settings
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.logging import SecurityLogger
from apps.rbac.serializers import LoginSerializer, UserSerializer
from apps.rbac.services import AuthService

logger = logging.getLogger(__name__)


def login_rate(group, request):
    return settings.LOGIN_RATE_LIMIT


@extend_schema(
    tags=['Authentication'],
    summary='Login user',
    description='''
Authenticate user with email and password.

Returns a JWT token for API authentication and user information.

**No authentication required** - this is a public endpoint.
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={
                'email': 'admin@greenfield.school',
                'password': 'SecurePass123!'
            },
            request_only=True
        ),
        OpenApiExample(
            'Invalid Credentials',
            value={
                'error': 'Invalid email or password'
            },
            response_only=True,
            status_codes=['401']
        ),
        OpenApiExample(
            'Rate Limit Exceeded',
            value={
                'error': 'Rate limit exceeded. Please try again later.',
                'code': 'RATE_LIMIT_EXCEEDED',
                'retry_after': 60
            },
            response_only=True,
            status_codes=['429']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate=login_rate, method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login

    Authenticate user and return JWT token.

    No authentication required. Rate limited per client IP by
    LOGIN_RATE_LIMIT (5 requests per minute by default).
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            ip_address = request.META.get('REMOTE_ADDR', 'unknown')
            SecurityLogger.log_rate_limit_exceeded(
                endpoint='/v1/auth/login',
                ip_address=ip_address,
                user_email=request.data.get('email') if isinstance(request.data, dict) else None,
                limit=f'{settings.LOGIN_RATE_LIMIT} per IP',
            )

            retry_after = 60
            response = Response(
                {
                    'error': 'Rate limit exceeded. Please try again later.',
                    'code': 'RATE_LIMIT_EXCEEDED',
                    'retry_after': retry_after
                },
                status=status.HTTP_429_TOO_MANY_REQUESTS
            )
            response['Retry-After'] = str(retry_after)
            return response

        serializer = LoginSerializer(data=request.data)

        if not serializer.is_valid():
            return Response(
                {
                    'error': 'Validation error',
                    'details': serializer.errors
                },
                status=status.HTTP_400_BAD_REQUEST
            )

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            ip_address=request.META.get('REMOTE_ADDR'),
        )

        if not result:
            return Response(
                {
                    'error': 'Invalid email or password'
                },
                status=status.HTTP_401_UNAUTHORIZED
            )

        return Response(
            {
                'user': UserSerializer(result['user']).data,
                'token': result['token'],
                'message': 'Login successful'
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Refresh token',
    description='Issue a fresh JWT for the authenticated user.',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class RefreshTokenView(APIView):
    """
    POST /v1/auth/refresh-token

    Requires JWT authentication.
    """

    def post(self, request):
        token = AuthService.generate_jwt(request.user)
        return Response(
            {
                'token': token,
                'message': 'Token refreshed successfully'
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Get current user profile',
    description='''
Profile of the authenticated user including their single role and tenant.

Use `GET /v1/permissions/me` for the resolved permission set.
    ''',
    responses={
        200: UserSerializer,
        401: OpenApiTypes.OBJECT,
    },
)
class UserProfileView(APIView):
    """
    GET /v1/auth/me
    """

    def get(self, request):
        return Response(UserSerializer(request.user).data)
