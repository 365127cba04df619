from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import ValidationError

from app.api.dependencies import get_lookup_service
from app.api.pages import render_page
from app.core.errors import AppError, ValidationAppError
from app.core.exception_handlers import headers_for, status_code_for
from app.core.rate_limit import enforce_rate_limit, get_client_id
from app.schemas.lookup import LookupRequest, LookupResponse
from app.services.lookup_service import LookupService
from app.utils.disconnect import cancel_on_disconnect

router = APIRouter(tags=["Lookup"])


def _is_json_request(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


async def _read_json_number(request: Request) -> str:
    try:
        payload = LookupRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        raise ValidationAppError(
            code="invalid_request_body",
            message="Request body must be a JSON object with a 'mobile' field",
        ) from exc
    return payload.mobile


@router.get("/", response_class=HTMLResponse, dependencies=[Depends(enforce_rate_limit)])
async def index() -> HTMLResponse:
    """Serve the lookup form."""
    return HTMLResponse(render_page())


@router.get("/lookup", include_in_schema=False)
async def lookup_redirect() -> RedirectResponse:
    return RedirectResponse("/", status_code=303)


@router.post(
    "/lookup",
    response_model=LookupResponse,
    responses={
        400: {"description": "Invalid mobile number"},
        429: {"description": "Rate limit exceeded"},
        503: {"description": "Database or provider unavailable"},
    },
)
async def lookup(
    request: Request,
    service: LookupService = Depends(get_lookup_service),
) -> Response:
    """Look up the name linked to a mobile number.

    Accepts either a form-encoded ``mobile`` field (HTML response, used by the
    form on ``/``) or a JSON body ``{"mobile": "..."}`` (JSON response).

    Errors of JSON requests are rendered by the global exception handlers;
    errors of form submissions are shown inline on the page with the same
    status code.
    """
    client_id = get_client_id(request)

    if _is_json_request(request):
        # Admission comes before the body is even parsed
        service.check_rate_limit(client_id)
        raw_mobile = await _read_json_number(request)
        result = await cancel_on_disconnect(
            request, service.handle(client_id, raw_mobile, admitted=True)
        )
        return JSONResponse(result.model_dump(mode="json"))

    raw_mobile: str | None = None
    try:
        service.check_rate_limit(client_id)
        form = await request.form()
        value = form.get("mobile")
        raw_mobile = value if isinstance(value, str) else None
        result = await cancel_on_disconnect(
            request, service.handle(client_id, raw_mobile, admitted=True)
        )
    except AppError as exc:
        return HTMLResponse(
            render_page(error=exc.message, mobile=raw_mobile),
            status_code=status_code_for(exc),
            headers=headers_for(exc),
        )
    return HTMLResponse(render_page(result=result, mobile=raw_mobile))
