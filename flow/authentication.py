"""
Token authentication for operators and service accounts.

Operators send ``Authorization: Token <key>``; service accounts that sit
behind a payment gateway or scheduler usually speak ``Bearer``.  Both
keywords resolve to the same DRF ``Token`` table.  Kept in its own module
so DRF can import it from settings without pulling in any views.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
    keywords = ('token', 'bearer')

    def authenticate(self, request):
        auth = authentication.get_authorization_header(request).split()
        if not auth or auth[0].lower().decode(errors='ignore') not in self.keywords:
            return None
        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')
        try:
            key = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header. Token string should not contain invalid characters.')
        return self.authenticate_credentials(key)
