"""
Custom DRF authentication classes.
"""
import logging
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework import exceptions

from apps.core.middleware import set_current_tenant_id

logger = logging.getLogger(__name__)


class JWTAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying ``Authorization: Bearer <token>``.

    Requests without a bearer token are left unauthenticated so that
    permission classes decide whether anonymous access is allowed.
    Invalid or expired tokens are rejected with 401.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()

        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid Authorization header. Expected: Bearer <token>')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token encoding')

        from apps.rbac.services import AuthService

        user = AuthService.get_user_from_jwt(token)
        if user is None:
            logger.info(
                "Rejected invalid or expired JWT",
                extra={'request_id': getattr(request, 'request_id', None)}
            )
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        set_current_tenant_id(user.tenant_id)
        return (user, token)

    def authenticate_header(self, request):
        return self.keyword
