import os
import firebase_admin
from firebase_admin import credentials, firestore
from dotenv import load_dotenv

load_dotenv()

BOOKING_PROVIDER_API_URL    = os.getenv("BOOKING_PROVIDER_API_URL", "https://api.sandbox.holibob.tech/graphql")
BOOKING_PROVIDER_API_KEY    = os.getenv("BOOKING_PROVIDER_API_KEY", "")
BOOKING_PROVIDER_API_SECRET = os.getenv("BOOKING_PROVIDER_API_SECRET")
BOOKING_PROVIDER_PARTNER_ID = os.getenv("BOOKING_PROVIDER_PARTNER_ID", "")

TICKETING_API_URL = os.getenv("TICKETING_API_URL", "https://dev.tickitto.tech")
TICKETING_API_KEY = os.getenv("TICKETING_API_KEY", "")

PERPLEXITY_API_KEY   = os.getenv("PERPLEXITY_API_KEY")
FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "serviceAccountKey.json")

LOG_LEVEL           = os.getenv("LOG_LEVEL", "INFO")
SESSION_MINUTES     = int(os.getenv("SESSION_MINUTES", "15"))
REPRICE_DEBOUNCE_MS = int(os.getenv("REPRICE_DEBOUNCE_MS", "300"))
SITE_CACHE_SECONDS  = int(os.getenv("SITE_CACHE_SECONDS", "300"))
BASE_URL            = os.getenv("BASE_URL", "http://localhost:8000")

# ── Firebase initialization (lazy, runs once) ───────────────────
_db = None


def get_db():
    """Return the shared Firestore client, initialising the app on first use."""
    global _db
    if _db is None:
        if not firebase_admin._apps:
            cred = credentials.Certificate(FIREBASE_CREDENTIALS)
            firebase_admin.initialize_app(cred)
        _db = firestore.client()
    return _db


# ── Price buckets (minor units, upper bound exclusive) ──────────
PRICE_RANGES = [
    {"label": "Under £25",   "min": 0,     "max": 2500},
    {"label": "£25 - £50",   "min": 2500,  "max": 5000},
    {"label": "£50 - £100",  "min": 5000,  "max": 10000},
    {"label": "£100 - £200", "min": 10000, "max": 20000},
    {"label": "£200+",       "min": 20000, "max": None},
]

# ── Duration buckets (minutes) ──────────────────────────────────
DURATION_RANGES = {
    "short":     {"label": "Under 1 hour", "min": 0,    "max": 60},
    "half-day":  {"label": "1-4 hours",    "min": 60,   "max": 240},
    "full-day":  {"label": "Full day",     "min": 240,  "max": 1440},
    "multi-day": {"label": "Multi-day",    "min": 1440, "max": None},
}

# ── Minimum rating options ──────────────────────────────────────
RATING_OPTIONS = [
    {"label": "4.5+", "value": 4.5},
    {"label": "4+",   "value": 4.0},
    {"label": "3+",   "value": 3.0},
]

SORT_OPTIONS = ["recommended", "price-low", "price-high", "rating", "popular", "distance"]

DEFAULT_PAGE_SIZE = 20
DEFAULT_RADIUS_KM = 50

# ── Image CDN presets ───────────────────────────────────────────
IMAGE_PRESETS = {
    "card":             {"width": 400,  "height": 267, "quality": 75},
    "galleryMain":      {"width": 800,  "height": 533, "quality": 80},
    "galleryThumbnail": {"width": 300,  "height": 200, "quality": 70},
    "lightbox":         {"width": 1200, "height": 800, "quality": 85},
    "compact":          {"width": 160,  "height": 107, "quality": 70},
}
IMAGE_CDN_HOST    = "images.holibob.tech"
PLACEHOLDER_IMAGE = "/placeholder-experience.jpg"

# ── Tenant domains ──────────────────────────────────────────────
MICROSITE_BASE_DOMAINS = [
    "experience-marketplace.com",
    "marketplace.holibob.com",
    "experiencess.com",
]
PARENT_DOMAINS = ["experiencess.com", "www.experiencess.com"]

DEFAULT_BRAND = {
    "name":            "Experience Marketplace",
    "tagline":         "Discover unique experiences",
    "primary_color":   "#6366f1",
    "secondary_color": "#8b5cf6",
    "accent_color":    "#f59e0b",
    "heading_font":    "Inter",
    "body_font":       "Inter",
}

WIZARD_PRIMARY_COLOR = "#0d9488"

# ── AI referral sources (referer host → source) ─────────────────
AI_REFERRAL_SOURCES = {
    "chat.openai.com":       "chatgpt",
    "chatgpt.com":           "chatgpt",
    "perplexity.ai":         "perplexity",
    "claude.ai":             "claude",
    "gemini.google.com":     "gemini",
    "copilot.microsoft.com": "copilot",
}
