from pydantic import BaseModel
from typing import List, Optional, Literal, Dict, Any


# ── Catalog ─────────────────────────────────────────────────────

class Price(BaseModel):
    amount:    int = 0            # minor units
    currency:  str = "GBP"
    formatted: str = ""


class Duration(BaseModel):
    value:     int = 0
    unit:      Literal["minutes", "hours", "days"] = "minutes"
    formatted: str = ""


class Rating(BaseModel):
    average: float
    count:   int = 0


class Location(BaseModel):
    name:          str = ""
    address:       str = ""
    lat:           float = 0
    lng:           float = 0
    map_image_url: Optional[str] = None


class Category(BaseModel):
    id:   str
    name: str
    slug: str = ""


class Review(BaseModel):
    id:          str = ""
    title:       str = ""
    content:     str = ""
    rating:      float = 0
    author_name: str = ""
    published:   Optional[str] = None


class ItineraryStop(BaseModel):
    name:        str
    description: str = ""


class Experience(BaseModel):
    id:                  str
    title:               str
    slug:                str
    short_description:   str = ""
    description:         str = ""
    image_url:           str
    images:              List[str] = []
    price:               Price
    duration:            Duration
    rating:              Optional[Rating] = None
    location:            Location = Location()
    categories:          List[Category] = []
    highlights:          List[str] = []
    inclusions:          List[str] = []
    exclusions:          List[str] = []
    cancellation_policy: str = ""
    itinerary:           List[ItineraryStop] = []
    additional_info:     List[str] = []
    languages:           List[str] = []
    reviews:             List[Review] = []
    provider:            Optional[Dict[str, str]] = None


class ExperienceListItem(BaseModel):
    id:                str
    title:             str
    slug:              str
    short_description: str = ""
    image_url:         str
    price:             Price
    duration:          Duration
    rating:            Optional[Rating] = None
    location:          Location = Location()
    categories:        List[str] = []
    city_id:           Optional[str] = None
    duration_minutes:  Optional[int] = None


# ── Filtering ───────────────────────────────────────────────────

class FilterState(BaseModel):
    categories: List[str] = []
    cities:     List[str] = []
    price_min:  Optional[int] = None
    price_max:  Optional[int] = None
    duration:   Optional[str] = None
    min_rating: Optional[float] = None
    search:     Optional[str] = None
    lat:        Optional[float] = None
    lng:        Optional[float] = None
    radius_km:  Optional[float] = None
    sort:       str = "recommended"


class FacetCount(BaseModel):
    name:  str
    count: int


class PriceBucket(BaseModel):
    label: str
    min:   int
    max:   Optional[int] = None
    count: int


class DurationBucket(BaseModel):
    label: str
    value: str
    count: int


class RatingBucket(BaseModel):
    label: str
    value: float
    count: int


class FilterCounts(BaseModel):
    categories:   List[FacetCount] = []
    cities:       List[FacetCount] = []
    price_ranges: List[PriceBucket] = []
    durations:    List[DurationBucket] = []
    ratings:      List[RatingBucket] = []


class ExperienceListResponse(BaseModel):
    experiences:    List[ExperienceListItem]
    page:           int
    total_count:    int
    filtered_count: int
    has_more:       bool
    filter_counts:  FilterCounts


# ── Tenant ──────────────────────────────────────────────────────

class Brand(BaseModel):
    name:            str
    tagline:         Optional[str] = None
    logo_url:        Optional[str] = None
    primary_color:   str = "#6366f1"
    secondary_color: str = "#8b5cf6"
    accent_color:    str = "#f59e0b"
    heading_font:    str = "Inter"
    body_font:       str = "Inter"
    favicon_url:     Optional[str] = None
    og_image_url:    Optional[str] = None
    social_links:    Dict[str, str] = {}


class MicrositeContext(BaseModel):
    microsite_id:         str
    entity_type:          Literal["SUPPLIER", "PRODUCT", "MARKETPLACE"]
    supplier_id:          Optional[str] = None
    product_id:           Optional[str] = None
    provider_supplier_id: Optional[str] = None


class SiteConfig(BaseModel):
    id:                  str
    slug:                str
    name:                str
    description:         Optional[str] = None
    primary_domain:      Optional[str] = None
    provider_partner_id: Optional[str] = None
    brand:               Optional[Brand] = None
    microsite:           Optional[MicrositeContext] = None
    homepage_config:     Dict[str, Any] = {}


class MicrositeHostInfo(BaseModel):
    is_microsite_subdomain: bool
    subdomain:              Optional[str] = None
    parent_domain:          Optional[str] = None
    full_domain:            str


# ── Local catalog (Firestore) ───────────────────────────────────

class LocalProduct(BaseModel):
    id:                  str
    provider_product_id: str
    slug:                str = ""
    title:               str
    short_description:   Optional[str] = None
    description:         Optional[str] = None
    price_from:          Optional[float] = None
    currency:            str = "GBP"
    duration:            Optional[str] = None
    city:                Optional[str] = None
    country:             Optional[str] = None
    rating:              Optional[float] = None
    review_count:        int = 0
    primary_image_url:   Optional[str] = None
    categories:          List[str] = []
    supplier_id:         Optional[str] = None


class LocalSupplier(BaseModel):
    id:                   str
    provider_supplier_id: str
    slug:                 str = ""
    name:                 str
    description:          Optional[str] = None
    product_count:        int = 0
    cities:               List[str] = []
    categories:           List[str] = []
    rating:               Optional[float] = None
    review_count:         int = 0
    logo_url:             Optional[str] = None
    hero_image_url:       Optional[str] = None


class RelatedMicrosite(BaseModel):
    full_domain:   str
    site_name:     str
    tagline:       Optional[str] = None
    logo_url:      Optional[str] = None
    categories:    List[str] = []
    cities:        List[str] = []
    product_count: int = 0
    rating:        Optional[float] = None


class FeaturedSupplier(BaseModel):
    id:             str
    name:           str
    slug:           str
    description:    Optional[str] = None
    product_count:  int = 0
    cities:         List[str] = []
    categories:     List[str] = []
    rating:         Optional[float] = None
    review_count:   int = 0
    hero_image_url: Optional[str] = None
    microsite_url:  Optional[str] = None


class SupplierFacet(BaseModel):
    name:           str
    slug:           str
    supplier_count: int


class PlatformStats(BaseModel):
    total_suppliers:   int = 0
    total_products:    int = 0
    total_cities:      int = 0
    total_categories:  int = 0
    active_microsites: int = 0
