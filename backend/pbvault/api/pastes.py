# pbvault/api/pastes.py

import logging

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from pbvault.core import errors
from pbvault.core.errors import ConnectionFailure, PasteError
from pbvault.core.rate_limit import rate_limit_dependency
from pbvault.services.paste_service import (
    ContentKind,
    PasteService,
    decode_verify_id,
    parse_expire_hours,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    errors.BAD_INPUT: 400,
    errors.FORBIDDEN: 403,
    errors.NOT_FOUND: 404,
    errors.UPSTREAM_FAILURE: 502,
}

# Client-facing details never say which check failed
DETAILS = {
    400: "Bad request",
    403: "Forbidden",
    404: "Not found",
    502: "Upstream failure",
}


def to_http_error(exc: PasteError) -> HTTPException:
    status_code = STATUS_CODES.get(exc.status, 502)
    return HTTPException(status_code=status_code, detail=DETAILS[status_code])


def get_service(request: Request) -> PasteService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=502, detail=DETAILS[502])
    return service


def client_ip(request: Request) -> str:
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else ""


@router.post("/", dependencies=[Depends(rate_limit_dependency)])
def upload_paste(
    request: Request,
    d: UploadFile = File(...),
    p: str = Form(""),
    e: str = Form(""),
    service: PasteService = Depends(get_service),
):
    # One byte past the cap is enough for ingest to reject the upload
    try:
        data = d.file.read(service.settings.max_paste_bytes + 1)
    finally:
        d.file.close()
    try:
        result = service.ingest(data, p, parse_expire_hours(e), client_ip(request))
    except PasteError as exc:
        raise to_http_error(exc)

    if result.redirect:
        return RedirectResponse(result.location, status_code=302)
    return PlainTextResponse(f"Published at {result.location}")


@router.get("/status")
def service_status(service: PasteService = Depends(get_service)):
    settings = service.settings
    return {
        "status": "ok" if service.store.ping() else "degraded",
        "recaptcha": settings.recaptcha_enable,
        "maxExpireHrs": settings.expire_hours,
        "detectAbuse": settings.detect_abuse,
    }


@router.get("/showVerify")
def show_verify(id: str = ""):
    """Pending paste id for the verification page (rendered elsewhere)."""
    try:
        short_id = decode_verify_id(id)
    except PasteError as exc:
        raise to_http_error(exc)
    return {"status": "pending", "shortId": short_id, "snipid": id}


@router.post("/verify", dependencies=[Depends(rate_limit_dependency)])
def verify_paste(
    request: Request,
    snipid: str = Form(""),
    captcha_response: str = Form("", alias="g-recaptcha-response"),
    service: PasteService = Depends(get_service),
):
    if not service.settings.recaptcha_enable:
        raise HTTPException(status_code=403, detail=DETAILS[403])
    try:
        short_id = decode_verify_id(snipid)
    except PasteError as exc:
        raise to_http_error(exc)

    remote_ip = request.headers.get("X-Real-IP")
    if not remote_ip:
        raise HTTPException(status_code=502, detail=DETAILS[502])

    verifier = request.app.state.captcha
    if not verifier(captcha_response, remote_ip):
        raise HTTPException(status_code=403, detail=DETAILS[403])

    try:
        service.confirm(short_id)
    except ConnectionFailure as exc:
        logger.warning("Verification update failed for %s: %s", short_id, exc)
        raise HTTPException(status_code=410, detail="Gone")
    return PlainTextResponse(
        f"Verification Passed. Go to https://{service.settings.host}/{short_id} to see your paste."
    )


@router.delete("/admin", status_code=202)
def delete_paste(
    id: str = "",
    x_master_key: str = Header("", alias="X-Master-Key"),
    service: PasteService = Depends(get_service),
):
    try:
        service.admin_delete(x_master_key, id)
    except PasteError as exc:
        raise to_http_error(exc)
    return {"status": "deleted", "shortId": id}


@router.get("/{short_id}")
def show_paste(
    short_id: str,
    p: str = "",
    f: str = "",
    service: PasteService = Depends(get_service),
):
    try:
        disclosure = service.disclose(short_id, p, raw=f == "raw")
    except PasteError as exc:
        raise to_http_error(exc)

    if disclosure.kind is ContentKind.RAW:
        return Response(content=disclosure.content, media_type="text/plain")
    return JSONResponse(disclosure.content)
