from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from models.schemas import SiteConfig
from services.booking_wizard import BookingWizard, WizardError, store
from services.provider_client import get_provider_client
from services.tenant import get_site

router = APIRouter(prefix="/api/wizard", tags=["wizard"])


class WizardBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WizardCreate(WizardBody):
    product_id:   str
    product_name: Optional[str] = None


class DatesBody(WizardBody):
    date_from: Optional[str] = None
    date_to:   Optional[str] = None


class SlotBody(WizardBody):
    slot_id: str


class OptionsBody(WizardBody):
    selections: dict = {}


class GuestsBody(WizardBody):
    category_id: str
    delta:       int


def _wizard(wizard_id: str) -> BookingWizard:
    wizard = store.get(wizard_id)
    if wizard is None:
        raise HTTPException(status_code=404, detail=f"Wizard '{wizard_id}' not found")
    return wizard


def _state(wizard: BookingWizard, **extra) -> dict:
    return {"success": True, "data": dict(wizard.to_dict(), **extra)}


@router.post("")
async def create_wizard(body: WizardCreate, site: SiteConfig = Depends(get_site)):
    """Open a wizard for one product and load the default 30-day window."""
    wizard = store.create(get_provider_client(site), body.product_id, product_name=body.product_name)
    await wizard.load_availability()
    return _state(wizard)


@router.get("/{wizard_id}")
async def get_wizard(wizard_id: str):
    wizard = _wizard(wizard_id)
    wizard.check_session()
    await wizard.flush()
    return _state(wizard)


@router.post("/{wizard_id}/dates")
async def load_dates(wizard_id: str, body: DatesBody):
    wizard = _wizard(wizard_id)
    try:
        await wizard.load_availability(body.date_from, body.date_to)
    except WizardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(wizard)


@router.post("/{wizard_id}/slot")
async def select_slot(wizard_id: str, body: SlotBody):
    wizard = _wizard(wizard_id)
    try:
        await wizard.select_slot(body.slot_id)
    except WizardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(wizard)


@router.post("/{wizard_id}/options")
async def submit_options(wizard_id: str, body: OptionsBody):
    wizard = _wizard(wizard_id)
    try:
        for option_id, value in body.selections.items():
            wizard.set_option(option_id, str(value))
        await wizard.submit_options()
    except WizardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(wizard)


@router.post("/{wizard_id}/guests")
async def change_guests(wizard_id: str, body: GuestsBody):
    """Adjust one pricing category; the re-price is debounced and settles on the next read."""
    wizard = _wizard(wizard_id)
    try:
        wizard.change_units(body.category_id, body.delta)
    except WizardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(wizard)


@router.post("/{wizard_id}/book")
async def book(wizard_id: str):
    wizard = _wizard(wizard_id)
    try:
        checkout_url = await wizard.book()
    except WizardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    store.discard(wizard_id)
    return {"success": True, "data": {"checkout_url": checkout_url}}


@router.delete("/{wizard_id}")
async def close_wizard(wizard_id: str):
    if not store.discard(wizard_id):
        raise HTTPException(status_code=404, detail=f"Wizard '{wizard_id}' not found")
    return {"success": True}
