import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from config import DEFAULT_PAGE_SIZE
from models.schemas import FilterState, SiteConfig
from services import catalog_service
from services.filter_service import compute_filter_counts, filter_experiences, parse_filter_state
from services.llm_service import filter_state_from_text
from services.product_mapper import (
    local_product_to_list_item,
    map_product_to_experience,
    map_product_to_list_item,
)
from services.provider_client import BookingProviderError, get_provider_client
from services.tenant import get_site

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["experiences"])

DISCOVERY_LIMIT     = 100
LOCAL_CATALOG_LIMIT = 500
MICROSITE_CACHE     = "public, s-maxage=60, stale-while-revalidate=300"


def _discovery_filter(state: FilterState) -> dict:
    f = {}
    if state.lat is not None and state.lng is not None:
        f["geo_point"] = {"lat": state.lat, "lng": state.lng, "radius_km": state.radius_km}
    if state.price_min is not None:
        f["price_min"] = state.price_min
    if state.price_max is not None:
        f["price_max"] = state.price_max
    return f


async def collect_experiences(site: SiteConfig, state: FilterState):
    """Candidate list items for a site: local catalog for supplier microsites, provider discovery otherwise."""
    ms = site.microsite
    if ms and ms.entity_type == "SUPPLIER" and ms.supplier_id:
        products, _ = catalog_service.get_supplier_products(ms.supplier_id, limit=LOCAL_CATALOG_LIMIT)
        return [local_product_to_list_item(p) for p in products]

    result = await get_provider_client(site).discover_products(_discovery_filter(state), first=DISCOVERY_LIMIT)
    return [map_product_to_list_item(p) for p in result.get("nodes") or []]


@router.get("/experiences")
async def list_experiences(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    site: SiteConfig = Depends(get_site),
):
    """Filtered, counted and paginated experiences for the current site."""
    state = parse_filter_state(request.query_params)
    try:
        items = await collect_experiences(site, state)
    except BookingProviderError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return {"success": True, "data": filter_experiences(items, state, page, page_size)}


@router.get("/experiences/search")
async def search_experiences(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    site: SiteConfig = Depends(get_site),
):
    """Natural-language search: the query is parsed into filters before matching."""
    state = await run_in_threadpool(filter_state_from_text, q)
    try:
        items = await collect_experiences(site, state)
    except BookingProviderError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return {"success": True, "data": filter_experiences(items, state, page), "filters": state}


@router.get("/microsite-experiences")
async def microsite_experiences(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, alias="pageSize"),
    site: SiteConfig = Depends(get_site),
):
    """Provider-side filtered products for one supplier (marketplace microsites)."""
    params      = request.query_params
    supplier_id = params.get("holibobSupplierId")
    if not supplier_id:
        raise HTTPException(status_code=400, detail="holibobSupplierId is required")

    filters = {}
    if params.get("categories"):
        filters["category_ids"] = [c for c in params["categories"].split(",") if c]
    if params.get("search"):
        filters["search"] = params["search"]
    if params.get("city"):
        filters["place_name"] = params["city"]

    logger.info("Microsite experiences for %s page %d filters %s", supplier_id, page, filters)
    try:
        response = await get_provider_client(site).get_products_by_provider(supplier_id, page, page_size, filters)
    except BookingProviderError as e:
        logger.error("Microsite experiences failed for %s: %s", supplier_id, e.message)
        return JSONResponse(status_code=502, content={
            "experiences":    [],
            "page":           1,
            "total_count":    0,
            "filtered_count": 0,
            "has_more":       False,
            "error":          "Failed to fetch experiences",
        })

    experiences = [map_product_to_list_item(p) for p in response.get("nodes") or []]
    next_page   = response.get("nextPage")
    body = {
        "experiences":    [e.model_dump() for e in experiences],
        "page":           page,
        "total_count":    response.get("unfilteredRecordCount") or response.get("recordCount") or 0,
        "filtered_count": response.get("recordCount") or len(experiences),
        "has_more":       next_page is not None and next_page > page,
        "filter_counts":  compute_filter_counts(experiences, parse_filter_state({})).model_dump(),
    }
    return JSONResponse(content=body, headers={"Cache-Control": MICROSITE_CACHE})


@router.get("/experiences/{product_id}")
async def get_experience(product_id: str, site: SiteConfig = Depends(get_site)):
    try:
        product = await get_provider_client(site).get_product(product_id)
    except BookingProviderError as e:
        raise HTTPException(status_code=502, detail=e.message)
    if not product:
        raise HTTPException(status_code=404, detail=f"Experience '{product_id}' not found")
    return {"success": True, "data": map_product_to_experience(product)}
