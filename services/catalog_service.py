# Catalog Service — Firebase Firestore
#
# Locally synced copy of supplier/product data, used for SEO-friendly
# microsite listings and the parent-domain homepage. Live availability and
# pricing always come from the Booking Provider.
#
# Collections: products, suppliers, microsites, sites
# Firestore filters on equality / array-contains; ordering is done in Python
# so documents with missing sort fields are kept (sorted last).

import logging
from typing import Dict, List, Optional, Tuple

from google.cloud.firestore_v1.base_query import FieldFilter

from config import get_db
from models.schemas import (
    FeaturedSupplier,
    LocalProduct,
    LocalSupplier,
    MicrositeContext,
    PlatformStats,
    RelatedMicrosite,
    SiteConfig,
    SupplierFacet,
)
from services.product_mapper import slugify

logger = logging.getLogger(__name__)

PRODUCT_SORT_FIELDS = {
    "rating":      "rating",
    "reviewCount": "reviewCount",
    "priceFrom":   "priceFrom",
    "createdAt":   "createdAt",
}


# ── Helpers ─────────────────────────────────────────────────────

def _to_product(doc) -> LocalProduct:
    d = doc.to_dict() or {}
    return LocalProduct(
        id=doc.id,
        provider_product_id=d.get("providerProductId") or doc.id,
        slug=d.get("slug") or "",
        title=d.get("title") or "",
        short_description=d.get("shortDescription"),
        description=d.get("description"),
        price_from=d.get("priceFrom"),
        currency=d.get("currency") or "GBP",
        duration=d.get("duration"),
        city=d.get("city"),
        country=d.get("country"),
        rating=d.get("rating"),
        review_count=d.get("reviewCount") or 0,
        primary_image_url=d.get("primaryImageUrl"),
        categories=d.get("categories") or [],
        supplier_id=d.get("supplierId"),
    )


def _to_supplier(doc) -> LocalSupplier:
    d = doc.to_dict() or {}
    return LocalSupplier(
        id=doc.id,
        provider_supplier_id=d.get("providerSupplierId") or doc.id,
        slug=d.get("slug") or "",
        name=d.get("name") or "",
        description=d.get("description"),
        product_count=d.get("productCount") or 0,
        cities=d.get("cities") or [],
        categories=d.get("categories") or [],
        rating=d.get("rating"),
        review_count=d.get("reviewCount") or 0,
        logo_url=d.get("logoUrl"),
        hero_image_url=d.get("heroImageUrl"),
    )


def _sort_docs(docs: List[dict], keys: List[str], descending: bool = True) -> List[dict]:
    """Stable multi-key sort; None values always sort last."""
    out = list(docs)
    for key in reversed(keys):
        present = [d for d in out if d.get(key) is not None]
        missing = [d for d in out if d.get(key) is None]
        present.sort(key=lambda d: d[key], reverse=descending)
        out = present + missing
    return out


def _stream(collection: str, *filters: FieldFilter):
    query = get_db().collection(collection)
    for f in filters:
        query = query.where(filter=f)
    return list(query.stream())


def _get(collection: str, doc_id: str):
    doc = get_db().collection(collection).document(doc_id).get()
    return doc if doc.exists else None


def _with_docs(docs) -> List[dict]:
    return [dict(doc.to_dict() or {}, _doc=doc) for doc in docs]


# ── Products ────────────────────────────────────────────────────

def get_supplier_products(
    supplier_id: str,
    limit: int = 20,
    offset: int = 0,
    sort_by: str = "rating",
    sort_order: str = "desc",
) -> Tuple[List[LocalProduct], int]:
    docs  = _with_docs(_stream("products", FieldFilter("supplierId", "==", supplier_id)))
    field = PRODUCT_SORT_FIELDS.get(sort_by, "rating")
    docs  = _sort_docs(docs, [field], descending=(sort_order != "asc"))
    page  = docs[offset:offset + limit]
    return [_to_product(d["_doc"]) for d in page], len(docs)


def get_product_by_id(product_id: str) -> Optional[LocalProduct]:
    doc = _get("products", product_id)
    return _to_product(doc) if doc else None


def get_product_by_provider_id(provider_product_id: str) -> Optional[LocalProduct]:
    docs = _stream("products", FieldFilter("providerProductId", "==", provider_product_id))
    return _to_product(docs[0]) if docs else None


def get_related_products(product: LocalProduct, supplier_id: Optional[str], limit: int = 8) -> List[LocalProduct]:
    """Same supplier, same city or overlapping categories; best rated first."""
    seen: Dict[str, dict] = {}
    candidates = []
    if supplier_id:
        candidates += _stream("products", FieldFilter("supplierId", "==", supplier_id))
    if product.city:
        candidates += _stream("products", FieldFilter("city", "==", product.city))
    if product.categories:
        candidates += _stream("products", FieldFilter("categories", "array_contains_any", product.categories[:10]))

    for doc in candidates:
        if doc.id != product.id and doc.id not in seen:
            seen[doc.id] = dict(doc.to_dict() or {}, _doc=doc)

    ranked = _sort_docs(list(seen.values()), ["rating", "reviewCount"])
    return [_to_product(d["_doc"]) for d in ranked[:limit]]


def get_microsite_homepage_products(context: MicrositeContext, limit: int = 8) -> List[LocalProduct]:
    if context.entity_type == "SUPPLIER" and context.supplier_id:
        products, _ = get_supplier_products(context.supplier_id, limit=limit)
        return products

    if context.entity_type == "PRODUCT" and context.product_id:
        product = get_product_by_id(context.product_id)
        if not product:
            return []
        if not product.supplier_id:
            return [product]
        return [product] + get_related_products(product, product.supplier_id, limit - 1)

    return []


# ── Suppliers ───────────────────────────────────────────────────

def get_supplier_by_id(supplier_id: str) -> Optional[LocalSupplier]:
    doc = _get("suppliers", supplier_id)
    return _to_supplier(doc) if doc else None


def get_supplier_by_provider_id(provider_supplier_id: str) -> Optional[LocalSupplier]:
    docs = _stream("suppliers", FieldFilter("providerSupplierId", "==", provider_supplier_id))
    return _to_supplier(docs[0]) if docs else None


def _active_suppliers() -> List[dict]:
    return _with_docs(_stream("suppliers", FieldFilter("productCount", ">", 0)))


def get_related_microsites(
    current_id: str, cities: List[str], categories: List[str], limit: int = 6
) -> List[RelatedMicrosite]:
    """Active microsites whose supplier shares a city or category with the current one."""
    try:
        cities_set, categories_set = set(cities), set(categories)
        related = []
        for doc in _stream("microsites", FieldFilter("status", "==", "ACTIVE")):
            ms = doc.to_dict() or {}
            if doc.id == current_id or not ms.get("supplierId"):
                continue
            supplier_doc = _get("suppliers", ms["supplierId"])
            if not supplier_doc:
                continue
            supplier = supplier_doc.to_dict() or {}
            if not (cities_set & set(supplier.get("cities") or []) or
                    categories_set & set(supplier.get("categories") or [])):
                continue
            related.append({"ms": ms, "rating": supplier.get("rating"),
                            "productCount": supplier.get("productCount") or 0, "supplier": supplier})

        ranked = _sort_docs(related, ["rating", "productCount"])[:limit]
        return [
            RelatedMicrosite(
                full_domain=r["ms"].get("fullDomain") or "",
                site_name=r["ms"].get("siteName") or "",
                tagline=r["ms"].get("tagline"),
                logo_url=None,
                categories=r["supplier"].get("categories") or [],
                cities=r["supplier"].get("cities") or [],
                product_count=r["productCount"],
                rating=r["rating"],
            )
            for r in ranked
        ]
    except Exception as e:
        logger.error("Failed to fetch related microsites: %s", e)
        return []


# ── Parent domain ───────────────────────────────────────────────

def get_featured_suppliers(limit: int = 12) -> List[FeaturedSupplier]:
    try:
        microsites = {
            (doc.to_dict() or {}).get("supplierId"): doc.to_dict() or {}
            for doc in _stream("microsites")
        }
        ranked = _sort_docs(_active_suppliers(), ["rating", "reviewCount", "productCount"])[:limit]
        out = []
        for d in ranked:
            s  = _to_supplier(d["_doc"])
            ms = microsites.get(s.id) or {}
            out.append(FeaturedSupplier(
                id=s.id,
                name=s.name,
                slug=s.slug,
                description=s.description,
                product_count=s.product_count,
                cities=s.cities,
                categories=s.categories,
                rating=s.rating,
                review_count=s.review_count,
                hero_image_url=s.hero_image_url,
                microsite_url=f"https://{ms['fullDomain']}" if ms.get("status") == "ACTIVE" and ms.get("fullDomain") else None,
            ))
        return out
    except Exception as e:
        logger.error("Failed to fetch featured suppliers: %s", e)
        return []


def _facet(field: str, limit: int) -> List[SupplierFacet]:
    counts: Dict[str, int] = {}
    for supplier in _active_suppliers():
        for name in supplier.get(field) or []:
            counts[name] = counts.get(name, 0) + 1
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])[:limit]
    return [SupplierFacet(name=name, slug=slugify(name), supplier_count=n) for name, n in ranked]


def get_supplier_categories(limit: int = 12) -> List[SupplierFacet]:
    try:
        return _facet("categories", limit)
    except Exception as e:
        logger.error("Failed to fetch supplier categories: %s", e)
        return []


def get_supplier_cities(limit: int = 16) -> List[SupplierFacet]:
    try:
        return _facet("cities", limit)
    except Exception as e:
        logger.error("Failed to fetch supplier cities: %s", e)
        return []


def get_platform_stats() -> PlatformStats:
    try:
        suppliers  = _active_suppliers()
        products   = len(_stream("products"))
        microsites = len(_stream("microsites", FieldFilter("status", "==", "ACTIVE")))
        cities     = {c for s in suppliers for c in s.get("cities") or []}
        categories = {c for s in suppliers for c in s.get("categories") or []}
        return PlatformStats(
            total_suppliers=len(suppliers),
            total_products=products,
            total_cities=len(cities),
            total_categories=len(categories),
            active_microsites=microsites,
        )
    except Exception as e:
        logger.error("Failed to fetch platform stats: %s", e)
        return PlatformStats()


def get_active_sites() -> List[SiteConfig]:
    """Active brand sites for the "Our Brands" strip, ordered by name."""
    from services.tenant import site_from_document

    try:
        sites = [site_from_document(doc) for doc in _stream("sites", FieldFilter("status", "==", "ACTIVE"))]
    except Exception as e:
        logger.error("Failed to fetch active sites: %s", e)
        return []

    for site in sites:
        if site.brand:
            site.brand.logo_url = None
    return sorted(sites, key=lambda s: s.name)
