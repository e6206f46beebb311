# Booking Wizard — date → options → pricing → booking handoff
#
# Server-side state machine behind the availability modal. Each wizard
# talks to the Booking Provider one call at a time; guest-count changes
# are re-priced through a debouncer so rapid +/- clicks cost one request.
# Wizards live in memory only (WizardStore) and die with the process.

import asyncio
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel

from config import REPRICE_DEBOUNCE_MS, SESSION_MINUTES, WIZARD_PRIMARY_COLOR
from models.booking import (
    AvailabilityDetail,
    AvailabilitySlot,
    CategoryUnits,
    Money,
    OptionAnswer,
    PricingCategory,
)
from services.booking_flow import BookingFlowError, fetch_availability, start_booking_flow
from services.provider_client import BookingProviderClient, BookingProviderError

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Your session has expired. Please select a date again."
DEFAULT_WINDOW_DAYS = 30
DEFAULT_MAX_UNITS   = 99


class WizardError(Exception):
    pass


# ── Debouncer ───────────────────────────────────────────────────

class Debouncer:
    """Run only the most recent scheduled call, `delay` seconds after it was scheduled."""

    def __init__(self, delay: float):
        self.delay    = delay
        self._task:    Optional[asyncio.Task] = None
        self._pending: Optional[Callable[[], Awaitable[None]]] = None

    def schedule(self, fn: Callable[[], Awaitable[None]]):
        self.cancel()
        self._pending = fn
        self._task    = asyncio.ensure_future(self._run(fn))

    async def _run(self, fn):
        await asyncio.sleep(self.delay)
        self._pending = None
        await fn()

    def cancel(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task    = None
        self._pending = None

    async def flush(self):
        """Run the pending call now, or wait for one already in flight."""
        task, fn = self._task, self._pending
        if task is None or task.done():
            return
        if fn is not None:
            self.cancel()
            await fn()
        else:
            await task


# ── Session countdown ───────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionTimer:
    WARNING_SECONDS  = 5 * 60
    CRITICAL_SECONDS = 2 * 60

    def __init__(self, started_at: datetime, duration_minutes: int = SESSION_MINUTES):
        self.started_at = started_at
        self.expires_at = started_at + timedelta(minutes=duration_minutes)

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        left = (self.expires_at - (now or _utcnow())).total_seconds()
        return max(0, int(left))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.remaining_seconds(now) <= 0

    def format(self, now: Optional[datetime] = None) -> str:
        minutes, seconds = divmod(self.remaining_seconds(now), 60)
        return f"{minutes}:{seconds:02d}"

    def urgency(self, now: Optional[datetime] = None) -> str:
        left = self.remaining_seconds(now)
        if left <= self.CRITICAL_SECONDS:
            return "critical"
        if left <= self.WARNING_SECONDS:
            return "warning"
        return "normal"

    def banner(self, now: Optional[datetime] = None) -> str:
        return f"Complete your booking in {self.format(now)}"

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        return {
            "remaining_seconds": self.remaining_seconds(now),
            "formatted":         self.format(now),
            "urgency":           self.urgency(now),
            "banner":            self.banner(now),
        }


# ── State ───────────────────────────────────────────────────────

Step = Literal["dates", "options", "pricing", "review"]


class WizardState(BaseModel):
    product_id:         str
    product_name:       Optional[str] = None
    step:               Step = "dates"
    date_from:          str
    date_to:            str
    slots:              List[AvailabilitySlot] = []
    selected_slot:      Optional[AvailabilitySlot] = None
    availability:       Optional[AvailabilityDetail] = None
    option_selections:  Dict[str, str] = {}
    options_complete:   bool = False
    pricing_categories: List[PricingCategory] = []
    category_units:     Dict[str, int] = {}
    total_price:        Optional[Money] = None
    is_valid:           bool = False
    error:              Optional[str] = None
    is_loading:         bool = False
    is_booking:         bool = False
    session_started_at: Optional[datetime] = None
    primary_color:      str = WIZARD_PRIMARY_COLOR


def _default_window(today: date):
    return today.isoformat(), (today + timedelta(days=DEFAULT_WINDOW_DAYS)).isoformat()


class BookingWizard:
    def __init__(
        self,
        client: BookingProviderClient,
        product_id: str,
        product_name: Optional[str] = None,
        primary_color: Optional[str] = None,
        debounce_ms: int = REPRICE_DEBOUNCE_MS,
        session_minutes: int = SESSION_MINUTES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client          = client
        self.id              = str(uuid.uuid4())
        self.session_minutes = session_minutes
        self.clock           = clock
        self._debouncer      = Debouncer(debounce_ms / 1000)
        self._initial        = {
            "product_id":    product_id,
            "product_name":  product_name,
            "primary_color": primary_color or WIZARD_PRIMARY_COLOR,
        }
        self.state      = self._fresh_state()
        self.created_at = self.clock()
        self.last_seen  = self.created_at

    def touch(self):
        self.last_seen = self.clock()

    def is_idle(self, idle_minutes: int) -> bool:
        return self.clock() - self.last_seen >= timedelta(minutes=idle_minutes)

    def _fresh_state(self) -> WizardState:
        date_from, date_to = _default_window(self.clock().date())
        return WizardState(date_from=date_from, date_to=date_to, **self._initial)

    # ── Session ─────────────────────────────────────────────────

    def session_timer(self) -> Optional[SessionTimer]:
        if self.state.session_started_at is None:
            return None
        return SessionTimer(self.state.session_started_at, self.session_minutes)

    def check_session(self, now: Optional[datetime] = None) -> bool:
        """Expire the session if its time is up. Returns True while the session is usable."""
        timer = self.session_timer()
        if timer is None:
            return True
        if not timer.is_expired(now or self.clock()):
            return True

        logger.debug("Wizard %s session expired", self.id)
        self._debouncer.cancel()
        self.state.error              = SESSION_EXPIRED
        self.state.step               = "dates"
        self.state.session_started_at = None
        self.state.selected_slot      = None
        return False

    def _require_session(self):
        if not self.check_session():
            raise WizardError(SESSION_EXPIRED)

    def _require_step(self, *steps: str):
        if self.state.step not in steps:
            raise WizardError(f"Not allowed in step '{self.state.step}'")

    @property
    def total_guests(self) -> int:
        return sum(self.state.category_units.values())

    # ── Dates ───────────────────────────────────────────────────

    async def load_availability(self, date_from: Optional[str] = None, date_to: Optional[str] = None):
        self._require_step("dates")
        s = self.state
        s.date_from  = date_from or s.date_from
        s.date_to    = date_to or s.date_to
        s.is_loading = True
        s.error      = None
        try:
            result  = await fetch_availability(self.client, s.product_id, s.date_from, s.date_to)
            s.slots = result.open_slots
            logger.debug("Wizard %s loaded %d open slots", self.id, len(s.slots))
        except BookingProviderError as e:
            logger.error("Failed to load availability for %s: %s", s.product_id, e.message)
            s.error = e.message or "Failed to load availability"
        finally:
            s.is_loading = False

    async def select_slot(self, slot_id: str):
        s    = self.state
        slot = next((x for x in s.slots if x.id == slot_id), None)
        if slot is None:
            raise WizardError(f"Unknown slot '{slot_id}'")

        self._debouncer.cancel()
        s.selected_slot      = slot
        s.session_started_at = self.clock()
        s.option_selections  = {}
        s.category_units     = {}
        s.total_price        = None
        s.is_valid           = False
        s.is_loading         = True
        s.error              = None
        try:
            s.availability     = await self.client.get_availability(slot.id)
            s.options_complete = bool(s.availability.option_list and s.availability.option_list.is_complete)
            if s.options_complete:
                await self._load_pricing()
            else:
                s.step = "options"
        except BookingProviderError as e:
            logger.error("Failed to load availability %s: %s", slot.id, e.message)
            s.error = e.message or "Failed to load availability details"
        finally:
            s.is_loading = False

    # ── Options ─────────────────────────────────────────────────

    def set_option(self, option_id: str, value: str):
        self._require_session()
        self._require_step("options")
        self.state.option_selections[option_id] = value

    async def submit_options(self):
        self._require_session()
        self._require_step("options")
        s = self.state
        s.is_loading = True
        s.error      = None
        try:
            answers = [OptionAnswer(id=k, value=v) for k, v in s.option_selections.items()]
            s.availability     = await self.client.set_availability_options(s.selected_slot.id, answers)
            s.options_complete = bool(s.availability.option_list and s.availability.option_list.is_complete)
            if s.options_complete:
                await self._load_pricing()
            else:
                s.error = "Please select all required options"
        except BookingProviderError as e:
            logger.error("Failed to set options on %s: %s", s.selected_slot.id, e.message)
            s.error = e.message or "Failed to set options"
        finally:
            s.is_loading = False

    # ── Pricing ─────────────────────────────────────────────────

    async def _load_pricing(self):
        s       = self.state
        pricing = await self.client.get_availability_pricing(s.selected_slot.id)
        s.pricing_categories = pricing.pricing_category_list
        s.category_units     = {c.id: c.min_participants or 0 for c in pricing.pricing_category_list}
        s.is_valid           = bool(pricing.is_valid)
        s.total_price        = pricing.total_price
        s.step               = "pricing"
        # starting counts are priced like any other change
        if any(units > 0 for units in s.category_units.values()):
            self._debouncer.schedule(self.reprice)

    def _cap(self, category: PricingCategory) -> int:
        cap = category.max_participants or DEFAULT_MAX_UNITS
        dep = category.max_participants_depends
        if dep:
            cap = min(cap, self.state.category_units.get(dep.pricing_category_id, 0) * dep.multiplier)
        return cap

    def change_units(self, category_id: str, delta: int):
        self._require_session()
        self._require_step("pricing")
        category = next((c for c in self.state.pricing_categories if c.id == category_id), None)
        if category is None:
            return

        current = self.state.category_units.get(category_id, 0)
        self.state.category_units[category_id] = max(0, min(self._cap(category), current + delta))
        self._debouncer.schedule(self.reprice)

    async def reprice(self):
        s        = self.state
        selected = [CategoryUnits(id=k, units=v) for k, v in s.category_units.items() if v > 0]
        if not selected:
            s.is_valid    = False
            s.total_price = None
            return
        try:
            result = await self.client.set_availability_pricing(s.selected_slot.id, selected)
        except BookingProviderError as e:
            logger.error("Pricing update error for %s: %s", s.selected_slot.id, e.message)
            return

        s.is_valid    = bool(result.is_valid)
        s.total_price = result.total_price
        if result.pricing_category_list:
            s.pricing_categories = result.pricing_category_list

    async def flush(self):
        await self._debouncer.flush()

    # ── Handoff ─────────────────────────────────────────────────

    async def book(self) -> str:
        self._require_session()
        await self.flush()
        s = self.state
        if s.selected_slot is None or not s.is_valid:
            raise WizardError("Select a date and a valid number of guests first")

        s.is_booking = True
        s.error      = None
        try:
            booking_id = await start_booking_flow(self.client, s.selected_slot.id)
        except (BookingProviderError, BookingFlowError) as e:
            message = getattr(e, "message", None) or str(e) or "Failed to create booking"
            logger.error("Failed to create booking for %s: %s", s.selected_slot.id, message)
            s.error      = message
            s.is_booking = False
            raise WizardError(message) from e
        return f"/checkout/{booking_id}"

    def reset(self):
        self._debouncer.cancel()
        self.state = self._fresh_state()

    def to_dict(self) -> dict:
        timer = self.session_timer()
        return {
            "id":           self.id,
            "state":        self.state.model_dump(mode="json"),
            "total_guests": self.total_guests,
            "session":      timer.to_dict(self.clock()) if timer else None,
        }


# ── In-memory store ─────────────────────────────────────────────

class WizardStore:
    """Wizards untouched for `idle_minutes` are dropped on the next create or get."""

    def __init__(self, idle_minutes: int = SESSION_MINUTES):
        self.idle_minutes = idle_minutes
        self._wizards: Dict[str, BookingWizard] = {}

    def __len__(self) -> int:
        return len(self._wizards)

    def sweep(self) -> int:
        idle = [wid for wid, w in self._wizards.items() if w.is_idle(self.idle_minutes)]
        for wid in idle:
            self.discard(wid)
        if idle:
            logger.debug("Evicted %d idle wizards", len(idle))
        return len(idle)

    def create(self, client: BookingProviderClient, product_id: str, **kwargs) -> BookingWizard:
        self.sweep()
        wizard = BookingWizard(client, product_id, **kwargs)
        self._wizards[wizard.id] = wizard
        return wizard

    def get(self, wizard_id: str) -> Optional[BookingWizard]:
        self.sweep()
        wizard = self._wizards.get(wizard_id)
        if wizard is not None:
            wizard.touch()
        return wizard

    def discard(self, wizard_id: str) -> bool:
        wizard = self._wizards.pop(wizard_id, None)
        if wizard:
            wizard.reset()
        return wizard is not None


store = WizardStore()
