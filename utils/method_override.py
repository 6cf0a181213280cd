# utils/method_override.py
from io import BytesIO
from urllib.parse import parse_qs

ALLOWED_METHODS = frozenset({"PUT", "PATCH", "DELETE"})

# larger form bodies are left unread; they can still override via the query string
MAX_FORM_SCAN = 64 * 1024


class MethodOverrideMiddleware:
    """
    Let HTML forms reach PUT/PATCH/DELETE routes.

    A POST carrying ``_method`` in its query string or urlencoded form body
    is dispatched with that method instead. Anything else passes through.
    Only bodies up to ``max_body`` bytes are inspected, so an oversized
    upload reaches Flask untouched and its own size limit still applies.
    """

    def __init__(self, app, param: str = "_method", max_body: int = MAX_FORM_SCAN):
        self.app = app
        self.param = param
        self.max_body = max_body

    def __call__(self, environ, start_response):
        if environ.get("REQUEST_METHOD", "").upper() == "POST":
            method = self._requested_method(environ)
            if method in ALLOWED_METHODS:
                environ["REQUEST_METHOD"] = method
        return self.app(environ, start_response)

    def _requested_method(self, environ) -> str:
        query = parse_qs(environ.get("QUERY_STRING", ""))
        if self.param in query:
            return query[self.param][0].upper()

        ctype = environ.get("CONTENT_TYPE", "").split(";", 1)[0].strip().lower()
        if ctype != "application/x-www-form-urlencoded":
            return ""

        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            return ""
        if length <= 0 or length > self.max_body:
            return ""

        body = environ["wsgi.input"].read(length)
        # put the body back for the app
        environ["wsgi.input"] = BytesIO(body)

        form = parse_qs(body.decode("latin-1"))
        values = form.get(self.param)
        return values[0].upper() if values else ""
