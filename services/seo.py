# SEO Service — JSON-LD structured data and meta tags
#
# Builders return plain dicts; templates serialise them with |tojson.
# Keys that would be empty (geo, aggregateRating, address) are left out
# rather than emitted as null.

import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional
from urllib.parse import unquote, urlencode, urljoin

from models.schemas import Experience, ExperienceListItem, SiteConfig

SCHEMA_CONTEXT   = "https://schema.org"
CANONICAL_PARAMS = ["category", "location", "page"]
META_DESCRIPTION_MAX = 160
OG_IMAGE_SIZE        = (1200, 630)


def _price_value(amount: int) -> str:
    return f"{amount / 100:.2f}"


def _same_as(site: SiteConfig) -> List[str]:
    links = site.brand.social_links if site.brand else {}
    return [v for v in links.values() if v]


def _aggregate_rating(experience) -> Optional[dict]:
    if not experience.rating:
        return None
    return {
        "@type":       "AggregateRating",
        "ratingValue": experience.rating.average,
        "ratingCount": experience.rating.count,
        "bestRating":  5,
        "worstRating": 1,
    }


def _images(experience: Experience) -> List[str]:
    return experience.images or [experience.image_url]


def _drop_empty(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


# ── Site-level ──────────────────────────────────────────────────

def organization_jsonld(site: SiteConfig, base_url: str) -> dict:
    return _drop_empty({
        "@context":    SCHEMA_CONTEXT,
        "@type":       "Organization",
        "name":        site.name,
        "description": site.description,
        "url":         base_url,
        "logo":        site.brand.logo_url if site.brand else None,
        "sameAs":      _same_as(site),
    })


def website_jsonld(site: SiteConfig, base_url: str) -> dict:
    return {
        "@context": SCHEMA_CONTEXT,
        "@type":    "WebSite",
        "name":     site.name,
        "url":      base_url,
        "potentialAction": {
            "@type":  "SearchAction",
            "target": {
                "@type":       "EntryPoint",
                "urlTemplate": f"{base_url}/experiences?q={{search_term_string}}",
            },
            "query-input": "required name=search_term_string",
        },
    }


def local_business_jsonld(site: SiteConfig, base_url: str, location: Optional[dict] = None) -> dict:
    """`location` carries address, city, country, lat and lng."""
    data = {
        "@context":    SCHEMA_CONTEXT,
        "@type":       "LocalBusiness",
        "@id":         base_url,
        "name":        site.name,
        "description": site.description,
        "url":         base_url,
        "logo":        site.brand.logo_url if site.brand else None,
        "image":       site.brand.og_image_url if site.brand else None,
        "sameAs":      _same_as(site),
    }
    if location:
        data["address"] = {
            "@type":           "PostalAddress",
            "streetAddress":   location.get("address"),
            "addressLocality": location.get("city"),
            "addressCountry":  location.get("country"),
        }
        data["geo"] = {
            "@type":     "GeoCoordinates",
            "latitude":  location.get("lat"),
            "longitude": location.get("lng"),
        }
    return _drop_empty(data)


# ── Experiences ─────────────────────────────────────────────────

def tourist_attraction_jsonld(experience: Experience, base_url: str) -> dict:
    loc  = experience.location
    data = {
        "@context":    SCHEMA_CONTEXT,
        "@type":       "TouristAttraction",
        "name":        experience.title,
        "description": experience.description,
        "url":         f"{base_url}/experiences/{experience.slug}",
        "image":       _images(experience),
        "address": {
            "@type":           "PostalAddress",
            "streetAddress":   loc.address,
            "addressLocality": loc.name,
        },
        "offers": {
            "@type":         "Offer",
            "price":         _price_value(experience.price.amount),
            "priceCurrency": experience.price.currency,
            "availability":  "https://schema.org/InStock",
            "validFrom":     datetime.now(timezone.utc).isoformat(),
        },
        "aggregateRating": _aggregate_rating(experience),
    }
    if loc.lat and loc.lng:
        data["geo"] = {"@type": "GeoCoordinates", "latitude": loc.lat, "longitude": loc.lng}
    return _drop_empty(data)


def product_jsonld(experience: Experience, base_url: str, today: Optional[date] = None) -> dict:
    url         = f"{base_url}/experiences/{experience.slug}"
    valid_until = (today or date.today()) + timedelta(days=365)
    return _drop_empty({
        "@context":    SCHEMA_CONTEXT,
        "@type":       "Product",
        "name":        experience.title,
        "description": experience.short_description,
        "url":         url,
        "image":       _images(experience),
        "brand":       {"@type": "Organization", "name": "Experience Marketplace"},
        "aggregateRating": _aggregate_rating(experience),
        "offers": {
            "@type":           "Offer",
            "price":           _price_value(experience.price.amount),
            "priceCurrency":   experience.price.currency,
            "availability":    "https://schema.org/InStock",
            "priceValidUntil": valid_until.isoformat(),
            "url":             url,
        },
    })


def breadcrumb_jsonld(items: List[Dict[str, str]], base_url: str) -> dict:
    return {
        "@context": SCHEMA_CONTEXT,
        "@type":    "BreadcrumbList",
        "itemListElement": [
            {
                "@type":    "ListItem",
                "position": i + 1,
                "name":     item["name"],
                "item":     item["url"] if item["url"].startswith("http") else f"{base_url}{item['url']}",
            }
            for i, item in enumerate(items)
        ],
    }


def item_list_jsonld(experiences: List[ExperienceListItem], base_url: str, list_name: str = "Experiences") -> dict:
    return {
        "@context":      SCHEMA_CONTEXT,
        "@type":         "ItemList",
        "name":          list_name,
        "numberOfItems": len(experiences),
        "itemListElement": [
            {
                "@type":    "ListItem",
                "position": i + 1,
                "url":      f"{base_url}/experiences/{exp.slug}",
                "name":     exp.title,
                "image":    exp.image_url,
            }
            for i, exp in enumerate(experiences)
        ],
    }


def faq_jsonld(faqs: List[Dict[str, str]]) -> dict:
    return {
        "@context": SCHEMA_CONTEXT,
        "@type":    "FAQPage",
        "mainEntity": [
            {
                "@type":          "Question",
                "name":           faq["question"],
                "acceptedAnswer": {"@type": "Answer", "text": faq["answer"]},
            }
            for faq in faqs
        ],
    }


# ── Meta tags ───────────────────────────────────────────────────

_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")


def clean_plain_text(text: str) -> str:
    """Strip leaked markdown links and URL-encoding from generated copy."""
    result = _MARKDOWN_LINK.sub(r"\1", text)
    result = unquote(result)
    result = re.sub(r"\)\s+(?=[A-Z])", " ", result)
    result = re.sub(r"^\s*\)", "", result)
    return re.sub(r"\s{2,}", " ", result).strip()


def get_canonical_url(path: str, base_url: str, params: Optional[Dict[str, str]] = None) -> str:
    url   = urljoin(base_url, path)
    query = [(k, params[k]) for k in CANONICAL_PARAMS if params and params.get(k)]
    return f"{url}?{urlencode(query)}" if query else url


def generate_meta_description(template: str, variables: Dict[str, object]) -> str:
    description = template
    for key, value in variables.items():
        description = description.replace("{" + key + "}", str(value))
    if len(description) > META_DESCRIPTION_MAX:
        description = description[:META_DESCRIPTION_MAX - 3] + "..."
    return description


def generate_open_graph_tags(
    title: str, description: str, url: str, image: Optional[str] = None, og_type: str = "website"
) -> dict:
    width, height = OG_IMAGE_SIZE
    return {
        "title":       title,
        "description": description,
        "url":         url,
        "type":        og_type,
        "images":      [{"url": image, "width": width, "height": height, "alt": title}] if image else [],
    }


def generate_twitter_tags(
    title: str, description: str, image: Optional[str] = None, card: str = "summary_large_image"
) -> dict:
    return {
        "card":        card,
        "title":       title,
        "description": description,
        "images":      [image] if image else [],
    }


def build_page_metadata(
    site: SiteConfig,
    title: Optional[str],
    description: Optional[str],
    path: str,
    base_url: str,
    image: Optional[str] = None,
    og_type: str = "website",
    params: Optional[Dict[str, str]] = None,
) -> dict:
    """Everything a page <head> needs: title, description, canonical, OG and Twitter."""
    full_title  = f"{title} | {site.name}" if title else site.name
    description = clean_plain_text(description or site.description or "")
    canonical   = get_canonical_url(path, base_url, params)
    image       = image or (site.brand.og_image_url if site.brand else None)
    return {
        "title":       full_title,
        "description": description,
        "canonical":   canonical,
        "open_graph":  generate_open_graph_tags(full_title, description, canonical, image, og_type),
        "twitter":     generate_twitter_tags(full_title, description, image),
    }
