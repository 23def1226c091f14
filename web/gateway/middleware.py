"""Gateway middleware: request ids and caller identity.

``RequestIdMiddleware`` gives every request an id, reusing the client's
``X-Request-ID`` when present, stores it in ``REQUEST_ID_CTX`` for logging
and outgoing HTTP calls, and echoes it on the response.

``ActorMiddleware`` resolves who is calling. Authentication itself happens
upstream (the auth proxy validates credentials and forwards the result as
``X-Actor-Role`` and ``X-Actor-Id``); this middleware only maps the role
onto the closed ``Role`` set and attaches an ``Actor`` to the request.
"""

import contextvars
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.orders.errors import UnknownRole
from apps.orders.permissions import Actor, GUEST, parse_role

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
ACTOR_ROLE_CTX = contextvars.ContextVar("actor_role", default="-")


class RequestIdMiddleware(MiddlewareMixin):
    """Sets ``request.request_id`` and the ``X-Request-ID`` response header."""

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        response[self.RESPONSE_HEADER] = getattr(request, "request_id", REQUEST_ID_CTX.get())
        return response


class ActorMiddleware(MiddlewareMixin):
    """Attach ``request.actor`` from the identity headers.

    A missing role header means an anonymous guest. An unmapped role is
    rejected with 400 rather than downgraded.
    """

    ROLE_HEADER = "HTTP_X_ACTOR_ROLE"
    ID_HEADER = "HTTP_X_ACTOR_ID"

    def process_request(self, request):
        # worker threads are reused; drop the previous request's role first
        ACTOR_ROLE_CTX.set("-")
        raw_role = request.META.get(self.ROLE_HEADER)
        actor_id = (request.META.get(self.ID_HEADER) or "").strip() or None
        if not raw_role:
            request.actor = Actor(id=actor_id) if actor_id else GUEST
        else:
            try:
                request.actor = Actor(role=parse_role(raw_role), id=actor_id)
            except UnknownRole as e:
                return JsonResponse({"detail": e.code, "message": e.message}, status=400)
        ACTOR_ROLE_CTX.set(request.actor.role.value)
