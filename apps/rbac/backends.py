"""
Custom authentication backend for the School RBAC API.

Provides email-based authentication compatible with Django admin.
"""
from django.contrib.auth.backends import BaseBackend
from django.contrib.auth import get_user_model

User = get_user_model()


class EmailAuthBackend(BaseBackend):
    """
    Authenticate using email address instead of username.

    This backend is compatible with Django admin and session authentication.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        # Django admin passes email as 'username' parameter
        email = username or kwargs.get('email')

        if not email or not password:
            return None

        user = User.objects.by_email(email)
        if user is None:
            # Run the default password hasher once to reduce timing
            # difference between existing and non-existing users
            User().set_password(password)
            return None

        if user.check_password(password) and user.is_active:
            return user

        return None

    def get_user(self, user_id):
        try:
            return User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValueError):
            return None
