# Request middleware — tenant id, attribution cookies and funnel session

import json
import logging
import uuid
from typing import Optional
from urllib.parse import urlparse

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from config import AI_REFERRAL_SOURCES
from services.tenant import get_request_hostname, get_site_id_from_host

logger = logging.getLogger(__name__)

SKIP_PREFIXES = ("/static", "/favicon.ico", "/api/health")

UTM_KEYS = ["source", "medium", "campaign", "term", "content"]

SITE_COOKIE_AGE     = 60 * 60 * 24
UTM_COOKIE_AGE      = 60 * 60 * 24 * 30
REFERRAL_COOKIE_AGE = 60 * 60 * 24 * 30
FUNNEL_COOKIE_AGE   = 60 * 30


def utm_params_from_request(request: Request) -> Optional[dict]:
    """UTM fields plus click ids, or None when the request carries none of them."""
    q      = request.query_params
    params = {key: q.get(f"utm_{key}") for key in UTM_KEYS}
    gclid  = q.get("gclid")
    fbclid = q.get("fbclid")
    if not any(params.values()) and not gclid and not fbclid:
        return None

    if gclid and not params["source"]:
        params["source"], params["medium"] = "google", params["medium"] or "cpc"
    if fbclid and not params["source"]:
        params["source"], params["medium"] = "facebook", params["medium"] or "cpc"

    params.update({"gclid": gclid, "fbclid": fbclid, "landingPage": request.url.path})
    return {k: v for k, v in params.items() if v is not None}


def detect_ai_referral(referer: Optional[str]) -> Optional[str]:
    if not referer:
        return None
    try:
        host = (urlparse(referer).hostname or "").lower()
    except ValueError:
        return None
    if host.startswith("www."):
        host = host[4:]
    return AI_REFERRAL_SOURCES.get(host)


class TenantMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(SKIP_PREFIXES):
            return await call_next(request)

        site_id = get_site_id_from_host(get_request_hostname(request.headers))
        request.state.site_id = site_id

        referral = detect_ai_referral(request.headers.get("referer"))
        funnel   = request.cookies.get("funnel_session") or str(uuid.uuid4())

        response = await call_next(request)

        response.headers["x-site-id"] = site_id
        response.set_cookie("x-site-id", site_id, max_age=SITE_COOKIE_AGE, httponly=True, samesite="lax")

        utm = utm_params_from_request(request)
        if utm:
            response.set_cookie("utm_params", json.dumps(utm), max_age=UTM_COOKIE_AGE, httponly=False, samesite="lax")

        if referral:
            logger.info("AI referral from %s for site %s", referral, site_id)
            response.headers["x-ai-referral"] = referral
            response.set_cookie("ai_referral_source", referral, max_age=REFERRAL_COOKIE_AGE, httponly=False, samesite="lax")

        response.set_cookie("funnel_session", funnel, max_age=FUNNEL_COOKIE_AGE, httponly=True, samesite="lax")
        return response
