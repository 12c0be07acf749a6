from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q

from core.logger_service import get_logger

logger = get_logger('auth')


class EmailBackend(ModelBackend):
    """
    Log in with either the account email (case-insensitive) or the username.

    An email shared by several accounts cannot identify one of them, so such
    logins are refused.
    """
    def authenticate(self, request, username=None, password=None, **kwargs):
        UserModel = get_user_model()
        identifier = username or kwargs.get(UserModel.USERNAME_FIELD) or kwargs.get('email')
        if not identifier or password is None:
            return None

        matches = list(UserModel.objects.filter(Q(email__iexact=identifier) | Q(username=identifier))[:2])
        if len(matches) != 1:
            if matches:
                logger.warning(f"Login refused for ambiguous identifier {identifier}")
            else:
                # Equalise timing with the password check of a real account
                UserModel().set_password(password)
            return None

        user = matches[0]
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
