# Form value access for inbound OAuth2 requests.
# Created: 2026-10-19

from __future__ import annotations

from starlette.requests import Request

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def form_values(request: Request) -> dict[str, str]:
    """Return the request's form values as a flat dict.

    URL query parameters are merged with an urlencoded/multipart body; body
    values win, and for repeated keys the first occurrence is kept. File
    uploads are ignored. The result is cached on ``request.state``.
    """
    cached = getattr(request.state, "oauth2_form", None)
    if cached is not None:
        return cached

    values: dict[str, str] = {}
    for key, value in request.query_params.multi_items():
        values.setdefault(key, value)

    content_type = request.headers.get("content-type", "")
    if request.method in _BODY_METHODS and content_type.startswith(_FORM_TYPES):
        body: dict[str, str] = {}
        form = await request.form()
        for key, value in form.multi_items():
            if isinstance(value, str):
                body.setdefault(key, value)
        values.update(body)

    request.state.oauth2_form = values
    return values

