"""CORS middleware - lets browser clients upload, download and verify documents."""

import falcon.asgi

# Response headers a browser client needs to read on downloads and 503s
_EXPOSED_HEADERS = "Content-Disposition, Retry-After, X-Content-Identifier"


class CORSMiddleware:
    """Echoes allowed origins and answers OPTIONS preflight with 204.

    An origin list containing ``*`` allows any origin.
    """

    def __init__(self, origins: list[str]) -> None:
        self._any_origin = "*" in origins
        self._origins = frozenset(o for o in origins if o != "*")

    def _allowed(self, origin: str | None) -> bool:
        return bool(origin) and (self._any_origin or origin in self._origins)

    def _set_cors_headers(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        resp.append_header("Vary", "Origin")
        origin = req.get_header("Origin")
        if not self._allowed(origin):
            return
        resp.set_header("Access-Control-Allow-Origin", origin)
        resp.set_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        resp.set_header("Access-Control-Allow-Headers", "Authorization, Content-Type")
        resp.set_header("Access-Control-Expose-Headers", _EXPOSED_HEADERS)
        resp.set_header("Access-Control-Max-Age", "86400")

    async def process_request(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        if req.method == "OPTIONS":
            self._set_cors_headers(req, resp)
            resp.status = falcon.HTTP_204
            resp.complete = True

    async def process_response(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, resource, req_succeeded
    ) -> None:
        if req.method != "OPTIONS":
            self._set_cors_headers(req, resp)
