"""
Bearer credentials: issuing, resolving and the DRF authentication class.

Credentials are HS256-signed access tokens (djangorestframework-simplejwt)
embedding the user id, valid for `STOREFRONT.credential_lifetime`.
A credential that cannot be verified never raises; the request simply
continues as anonymous.
"""
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from rest_framework import authentication
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)

User = get_user_model()

BEARER_PREFIX = 'Bearer '


def issue_credential(user) -> str:
    """Sign a time-bounded credential for `user`"""
    return str(AccessToken.for_user(user))


def resolve_credential(raw_token: Optional[str]):
    """
    Resolve a credential to an active user.

    Accepts the bare token or a full "Bearer <token>" header value.
    Returns None when the token is missing, malformed, expired, badly
    signed, or refers to a user that no longer exists.
    """
    if not raw_token:
        return None
    token_value = raw_token.strip()
    if token_value.startswith(BEARER_PREFIX):
        token_value = token_value[len(BEARER_PREFIX):].strip()
    if not token_value:
        return None

    try:
        token = AccessToken(token_value)
    except TokenError as e:
        logger.debug(f"Rejected credential: {e}")
        return None

    user_id = token.get(jwt_settings.USER_ID_CLAIM)
    if user_id is None:
        return None
    try:
        return User.objects.get(pk=user_id, is_active=True)
    except (User.DoesNotExist, ValueError, TypeError):
        return None


class BearerCredentialAuthentication(authentication.BaseAuthentication):
    """
    Authenticate from the Authorization header.

    Unlike simplejwt's JWTAuthentication, an invalid credential results in
    an anonymous request instead of a 401, so public endpoints keep working
    with a stale token in the client.
    """
    www_authenticate_realm = 'api'

    def authenticate(self, request):
        header = request.META.get('HTTP_AUTHORIZATION', '')
        if not header:
            return None
        user = resolve_credential(header)
        if user is None:
            return None
        return (user, None)

    def authenticate_header(self, request):
        return f'Bearer realm="{self.www_authenticate_realm}"'
