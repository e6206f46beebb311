# Tenant Service — hostname → site resolution and brand theming
#
# Site id rules (after stripping port, lowercasing and a leading "www."):
#   localhost / 127.0.0.1 / *.herokuapp.com      → "default"
#   <sub>--<app>.vercel.app                      → <sub>   (preview of a tenant)
#   other *.vercel.app                           → "default"
#   <sub>.<microsite base domain>                → <sub>
#   anything else (custom domain)                → full hostname

import logging
import time
from typing import Dict, Mapping, Optional, Tuple

from fastapi import Request
from google.cloud.firestore_v1.base_query import FieldFilter

from config import (
    DEFAULT_BRAND,
    MICROSITE_BASE_DOMAINS,
    PARENT_DOMAINS,
    SITE_CACHE_SECONDS,
    get_db,
)
from models.schemas import Brand, MicrositeContext, MicrositeHostInfo, SiteConfig

logger = logging.getLogger(__name__)

DEFAULT_SITE = SiteConfig(
    id="default",
    slug="default",
    name=DEFAULT_BRAND["name"],
    description="Discover and book unique tours, activities and experiences.",
    brand=Brand(**DEFAULT_BRAND),
)

_site_cache: Dict[str, Tuple[float, SiteConfig]] = {}
SITE_CACHE_MAX_ENTRIES = 1000


# ── Hostname parsing ────────────────────────────────────────────

def _clean_host(host: str) -> str:
    host = (host or "").split(":")[0].strip().lower()
    return host[4:] if host.startswith("www.") else host


def get_request_hostname(headers: Mapping[str, str]) -> str:
    return headers.get("x-forwarded-host") or headers.get("host") or "localhost"


def get_site_id_from_host(host: str) -> str:
    hostname = _clean_host(host)

    if hostname in ("localhost", "127.0.0.1") or hostname.endswith(".herokuapp.com"):
        return "default"

    if hostname.endswith(".vercel.app"):
        label = hostname.split(".")[0]
        return label.split("--")[0] if "--" in label else "default"

    for base in MICROSITE_BASE_DOMAINS:
        if hostname.endswith("." + base):
            return hostname[: -len(base) - 1]

    return hostname


def parse_microsite_hostname(host: str) -> MicrositeHostInfo:
    hostname = _clean_host(host)
    for base in MICROSITE_BASE_DOMAINS:
        if hostname.endswith("." + base):
            return MicrositeHostInfo(
                is_microsite_subdomain=True,
                subdomain=hostname[: -len(base) - 1],
                parent_domain=base,
                full_domain=hostname,
            )
    return MicrositeHostInfo(is_microsite_subdomain=False, full_domain=hostname)


def is_parent_domain(host: str) -> bool:
    if parse_microsite_hostname(host).is_microsite_subdomain:
        return False
    hostname = (host or "").split(":")[0].lower()
    return hostname in PARENT_DOMAINS


# ── Firestore documents → SiteConfig ────────────────────────────

def brand_from_dict(data: Optional[dict]) -> Optional[Brand]:
    if not data:
        return None
    return Brand(
        name=data.get("name") or DEFAULT_BRAND["name"],
        tagline=data.get("tagline"),
        logo_url=data.get("logoUrl"),
        primary_color=data.get("primaryColor") or DEFAULT_BRAND["primary_color"],
        secondary_color=data.get("secondaryColor") or DEFAULT_BRAND["secondary_color"],
        accent_color=data.get("accentColor") or DEFAULT_BRAND["accent_color"],
        heading_font=data.get("headingFont") or DEFAULT_BRAND["heading_font"],
        body_font=data.get("bodyFont") or DEFAULT_BRAND["body_font"],
        favicon_url=data.get("faviconUrl"),
        og_image_url=data.get("ogImageUrl"),
        social_links=data.get("socialLinks") or {},
    )


def site_from_document(doc) -> SiteConfig:
    d = doc.to_dict() or {}
    return SiteConfig(
        id=doc.id,
        slug=d.get("slug") or doc.id,
        name=d.get("name") or DEFAULT_SITE.name,
        description=d.get("description"),
        primary_domain=d.get("primaryDomain"),
        provider_partner_id=d.get("providerPartnerId"),
        brand=brand_from_dict(d.get("brand")),
        homepage_config=d.get("homepageConfig") or {},
    )


def site_from_microsite(doc) -> SiteConfig:
    from services.catalog_service import get_supplier_by_id

    d = doc.to_dict() or {}
    provider_supplier_id = None
    if d.get("supplierId"):
        supplier = get_supplier_by_id(d["supplierId"])
        provider_supplier_id = supplier.provider_supplier_id if supplier else None

    brand = brand_from_dict(d.get("brand")) or Brand(**DEFAULT_BRAND)
    brand.name    = d.get("siteName") or brand.name
    brand.tagline = d.get("tagline") or brand.tagline

    return SiteConfig(
        id=doc.id,
        slug=d.get("subdomain") or doc.id,
        name=d.get("siteName") or brand.name,
        description=d.get("seoDescription") or d.get("tagline"),
        primary_domain=d.get("fullDomain"),
        provider_partner_id=d.get("providerPartnerId"),
        brand=brand,
        microsite=MicrositeContext(
            microsite_id=doc.id,
            entity_type=d.get("entityType") or "SUPPLIER",
            supplier_id=d.get("supplierId"),
            product_id=d.get("productId"),
            provider_supplier_id=provider_supplier_id,
        ),
        homepage_config=d.get("homepageConfig") or {},
    )


def _lookup_site(hostname: str, site_id: str) -> Optional[SiteConfig]:
    db = get_db()

    microsites = list(
        db.collection("microsites")
        .where(filter=FieldFilter("fullDomain", "==", hostname))
        .where(filter=FieldFilter("status", "==", "ACTIVE"))
        .limit(1)
        .stream()
    )
    if microsites:
        return site_from_microsite(microsites[0])

    sites = list(
        db.collection("sites")
        .where(filter=FieldFilter("primaryDomain", "==", hostname))
        .limit(1)
        .stream()
    )
    if sites:
        return site_from_document(sites[0])

    doc = db.collection("sites").document(site_id).get()
    if doc.exists:
        return site_from_document(doc)

    by_slug = list(
        db.collection("sites")
        .where(filter=FieldFilter("slug", "==", site_id))
        .limit(1)
        .stream()
    )
    return site_from_document(by_slug[0]) if by_slug else None


def _remember_site(hostname: str, site: SiteConfig):
    now = time.monotonic()
    if hostname not in _site_cache and len(_site_cache) >= SITE_CACHE_MAX_ENTRIES:
        for key in [k for k, (stamp, _) in _site_cache.items() if now - stamp >= SITE_CACHE_SECONDS]:
            del _site_cache[key]
        while len(_site_cache) >= SITE_CACHE_MAX_ENTRIES:
            del _site_cache[min(_site_cache, key=lambda k: _site_cache[k][0])]
    _site_cache[hostname] = (now, site)


def get_site_from_hostname(host: str) -> SiteConfig:
    """Resolve the tenant for a request host, falling back to the default site."""
    site_id = get_site_id_from_host(host)
    if site_id == "default":
        return DEFAULT_SITE

    hostname = _clean_host(host)
    cached   = _site_cache.get(hostname)
    if cached and time.monotonic() - cached[0] < SITE_CACHE_SECONDS:
        return cached[1]

    site = _lookup_site(hostname, site_id)
    if site is None:
        logger.info("No site configured for host %s (site id %s), using default", hostname, site_id)
        site = DEFAULT_SITE

    _remember_site(hostname, site)
    return site


def clear_site_cache():
    _site_cache.clear()


# ── Theming ─────────────────────────────────────────────────────

def brand_css_variables(brand: Optional[Brand]) -> str:
    brand = brand or Brand(**DEFAULT_BRAND)
    return (
        ":root{"
        f"--color-primary:{brand.primary_color or DEFAULT_BRAND['primary_color']};"
        f"--color-secondary:{brand.secondary_color or DEFAULT_BRAND['secondary_color']};"
        f"--color-accent:{brand.accent_color or DEFAULT_BRAND['accent_color']};"
        f"--font-heading:'{brand.heading_font or DEFAULT_BRAND['heading_font']}',sans-serif;"
        f"--font-body:'{brand.body_font or DEFAULT_BRAND['body_font']}',sans-serif;"
        "}"
    )


# ── FastAPI dependency ──────────────────────────────────────────

def get_site(request: Request) -> SiteConfig:
    return get_site_from_hostname(get_request_hostname(request.headers))
