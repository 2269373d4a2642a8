"""Starlette middleware running the variant gate before page handlers"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .variant_gate import VariantGate


class VariantGateMiddleware(BaseHTTPMiddleware):
    """
    Runs VariantGate once per gated request.

    The resolved VisitorSession is exposed to handlers as
    ``request.state.visitor``; a new assignment is written onto the response.
    """

    def __init__(self, app, gate: VariantGate = None):
        super().__init__(app)
        self.gate = gate or VariantGate()

    async def dispatch(self, request: Request, call_next):
        if not self.gate.should_gate(request.url.path):
            return await call_next(request)

        session, cookie = self.gate.assign(request.cookies)
        request.state.visitor = session

        response = await call_next(request)
        if cookie is not None:
            cookie.apply(response)
        return response
