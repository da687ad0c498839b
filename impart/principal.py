"""
Request principals.

A principal is whoever is making the request. It is one of two variants:

  - AnonymousPrincipal: no credentials were presented. There is exactly one
    instance, ANONYMOUS.
  - AuthenticatedPrincipal: a bearer token resolved to a stored user.

"Is this caller anonymous?" is answered by the variant, never by comparing
user fields, so no stored user can ever be mistaken for an anonymous caller.
"""

from dataclasses import dataclass

from impart.models.user import User


class AnonymousPrincipal:
    is_anonymous = True
    user = None

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "AnonymousPrincipal()"


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    user: User
    is_anonymous = False


Principal = AnonymousPrincipal | AuthenticatedPrincipal

ANONYMOUS = AnonymousPrincipal()
