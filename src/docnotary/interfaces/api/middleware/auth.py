"""Auth middleware - resolves the document owner from a bearer token."""

import logging
from dataclasses import dataclass

import falcon.asgi

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "anonymous"


@dataclass
class RequestUser:
    """Caller identity; ``user_id`` becomes the owner of stored documents."""

    user_id: str
    email: str | None = None
    username: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == ANONYMOUS_USER_ID


class AuthMiddleware:
    """Sets ``req.context.user`` for every request.

    No Authorization header runs the request as the shared anonymous owner.
    Any other credential must be a bearer token the provider accepts;
    otherwise ``req.context.user`` is None and resources that store or list
    documents answer 401.
    """

    def __init__(self, keycloak_provider=None) -> None:
        self._keycloak = keycloak_provider

    async def process_request(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        auth = req.get_header("Authorization")
        if not auth:
            req.context.user = RequestUser(user_id=ANONYMOUS_USER_ID)
            return

        req.context.user = None
        scheme, _, token = auth.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            logger.debug("Rejecting non-bearer Authorization header on %s", req.path)
            return
        if self._keycloak is None:
            logger.debug("Bearer token on %s but no identity provider configured", req.path)
            return
        user = self._keycloak.decode_token(token)
        if user:
            req.context.user = RequestUser(
                user_id=user.user_id,
                email=user.email,
                username=user.username,
            )
