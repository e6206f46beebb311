import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from config import WIZARD_PRIMARY_COLOR
from models.schemas import SiteConfig
from routers.experiences import collect_experiences
from services import catalog_service, seo
from services.booking_flow import format_booking_date, summarize_questions
from services.filter_service import filter_experiences, parse_filter_state
from services.product_mapper import local_product_to_list_item, map_product_to_experience
from services.provider_client import BookingProviderError, get_provider_client
from services.tenant import brand_css_variables, get_request_hostname, get_site, is_parent_domain

logger = logging.getLogger(__name__)

router    = APIRouter(tags=["pages"], include_in_schema=False)
templates = Jinja2Templates(directory="templates")
templates.env.filters["booking_date"] = format_booking_date


def _base_url(request: Request) -> str:
    return f"{request.url.scheme}://{get_request_hostname(request.headers)}"


def _render(request: Request, template: str, site: SiteConfig, meta: dict, **context):
    return templates.TemplateResponse(request, template, {
        "site":      site,
        "brand":     site.brand,
        "brand_css": brand_css_variables(site.brand),
        "meta":      meta,
        **context,
    })


@router.get("/", response_class=HTMLResponse)
async def home(request: Request, site: SiteConfig = Depends(get_site)):
    base = _base_url(request)
    meta = seo.build_page_metadata(site, None, site.description, "/", base)
    jsonld = [seo.organization_jsonld(site, base), seo.website_jsonld(site, base)]

    if is_parent_domain(get_request_hostname(request.headers)):
        return _render(
            request, "home.html", site, meta,
            jsonld=jsonld,
            parent=True,
            featured=catalog_service.get_featured_suppliers(),
            categories=catalog_service.get_supplier_categories(),
            cities=catalog_service.get_supplier_cities(),
            stats=catalog_service.get_platform_stats(),
            brands=catalog_service.get_active_sites(),
        )

    products = []
    if site.microsite:
        products = [local_product_to_list_item(p) for p in catalog_service.get_microsite_homepage_products(site.microsite)]
    return _render(request, "home.html", site, meta, jsonld=jsonld, parent=False, experiences=products)


@router.get("/experiences", response_class=HTMLResponse)
async def experiences_page(request: Request, page: int = Query(1, ge=1), site: SiteConfig = Depends(get_site)):
    state = parse_filter_state(request.query_params)
    try:
        items = await collect_experiences(site, state)
    except BookingProviderError as e:
        logger.error("Experience listing failed for site %s: %s", site.id, e.message)
        items = []

    result = filter_experiences(items, state, page)
    base   = _base_url(request)
    meta   = seo.build_page_metadata(
        site, "Experiences",
        seo.generate_meta_description(
            "Browse {count} experiences with {site}. Compare prices, reviews and availability.",
            {"count": result.filtered_count, "site": site.name},
        ),
        "/experiences", base, params=dict(request.query_params),
    )
    return _render(
        request, "experiences.html", site, meta,
        result=result,
        state=state,
        jsonld=[seo.item_list_jsonld(result.experiences, base)],
    )


@router.get("/experiences/{product_id}", response_class=HTMLResponse)
async def experience_page(request: Request, product_id: str, site: SiteConfig = Depends(get_site)):
    try:
        product = await get_provider_client(site).get_product(product_id)
    except BookingProviderError as e:
        raise HTTPException(status_code=502, detail=e.message)
    if not product:
        raise HTTPException(status_code=404, detail=f"Experience '{product_id}' not found")

    experience = map_product_to_experience(product)
    base       = _base_url(request)
    local      = catalog_service.get_product_by_provider_id(product_id)
    related    = []
    if local:
        related = [local_product_to_list_item(p) for p in catalog_service.get_related_products(local, local.supplier_id)]

    meta = seo.build_page_metadata(
        site, experience.title, experience.short_description or experience.description,
        f"/experiences/{experience.slug}", base, image=experience.image_url, og_type="product",
    )
    breadcrumbs = [
        {"name": "Home", "url": "/"},
        {"name": "Experiences", "url": "/experiences"},
        {"name": experience.title, "url": f"/experiences/{experience.slug}"},
    ]
    return _render(
        request, "experience.html", site, meta,
        experience=experience,
        related=related,
        jsonld=[seo.tourist_attraction_jsonld(experience, base), seo.breadcrumb_jsonld(breadcrumbs, base)],
        wizard_color=(site.brand.primary_color if site.brand else None) or WIZARD_PRIMARY_COLOR,
    )


@router.get("/checkout/{booking_id}", response_class=HTMLResponse)
async def checkout_page(request: Request, booking_id: str, site: SiteConfig = Depends(get_site)):
    try:
        booking = await get_provider_client(site).get_booking_questions(booking_id)
    except BookingProviderError as e:
        if e.status == 404:
            raise HTTPException(status_code=404, detail=f"Booking '{booking_id}' not found")
        raise HTTPException(status_code=502, detail=e.message)

    meta = seo.build_page_metadata(site, "Checkout", "Complete your booking", f"/checkout/{booking_id}", _base_url(request))
    return _render(
        request, "checkout.html", site, meta,
        booking=booking,
        summary=summarize_questions(booking),
        jsonld=[],
    )
