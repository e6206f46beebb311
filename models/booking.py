# Booking DTOs — mirror the Booking Provider's look-to-book payloads.
# Field names are snake_case; aliases are the provider's camelCase so
# GraphQL responses validate directly with model_validate().

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Any


class ProviderModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _unwrap_nodes(value: Any) -> Any:
    """Flatten the provider's `{nodes: [...]}` connection wrapper."""
    if isinstance(value, dict) and "nodes" in value:
        return value["nodes"] or []
    return value if value is not None else []


class Money(ProviderModel):
    gross:                Optional[float] = None
    net:                  Optional[float] = None
    currency:             Optional[str] = None
    gross_formatted_text: Optional[str] = None
    net_formatted_text:   Optional[str] = None


# ── Availability ────────────────────────────────────────────────

class AvailabilitySlot(ProviderModel):
    id:                         str
    date:                       str
    guide_price_formatted_text: Optional[str] = None
    sold_out:                   bool = False


class OptionChoice(ProviderModel):
    label: str
    value: str


class AvailabilityOption(ProviderModel):
    id:                    str
    label:                 Optional[str] = None
    value:                 Optional[str] = None
    required:              Optional[bool] = None
    type:                  Optional[str] = None
    data_type:             Optional[str] = None
    data_format:           Optional[str] = None
    available_options:     List[OptionChoice] = []
    answer_value:          Optional[str] = None
    answer_formatted_text: Optional[str] = None


class OptionList(ProviderModel):
    is_complete: bool = False
    nodes:       List[AvailabilityOption] = []


class ParticipantsDependency(ProviderModel):
    pricing_category_id: str
    multiplier:          int = 1
    explanation:         Optional[str] = None


class PricingCategory(ProviderModel):
    id:                       str
    label:                    str
    min_participants:         int = 0
    max_participants:         Optional[int] = None
    max_participants_depends: Optional[ParticipantsDependency] = None
    units:                    int = 0
    unit_price:               Optional[Money] = None
    total_price:              Optional[Money] = None


class AvailabilityListResult(ProviderModel):
    session_id:  Optional[str] = None
    nodes:       List[AvailabilitySlot] = []
    option_list: OptionList = OptionList()

    @property
    def open_slots(self) -> List[AvailabilitySlot]:
        return [s for s in self.nodes if not s.sold_out]


class AvailabilityDetail(ProviderModel):
    id:                    str
    date:                  Optional[str] = None
    option_list:           Optional[OptionList] = None
    min_participants:      Optional[int] = None
    max_participants:      Optional[int] = None
    is_valid:              Optional[bool] = None
    total_price:           Optional[Money] = None
    pricing_category_list: List[PricingCategory] = []

    @classmethod
    def from_provider(cls, data: dict) -> "AvailabilityDetail":
        data = dict(data)
        if "pricingCategoryList" in data:
            data["pricingCategoryList"] = _unwrap_nodes(data["pricingCategoryList"])
        return cls.model_validate(data)


# ── Booking ─────────────────────────────────────────────────────

class BookingQuestion(ProviderModel):
    id:                  str
    label:               Optional[str] = None
    type:                Optional[str] = None
    data_type:           Optional[str] = None
    data_format:         Optional[str] = None
    answer_value:        Optional[str] = None
    auto_complete_value: Optional[str] = None
    is_required:         bool = False


class BookingPerson(ProviderModel):
    id:                     str
    pricing_category_label: Optional[str] = None
    is_questions_complete:  Optional[bool] = None
    question_list:          List[BookingQuestion] = []


class BookingProduct(ProviderModel):
    id:   str
    name: Optional[str] = None


class BookingAvailability(ProviderModel):
    id:            str
    date:          Optional[str] = None
    start_time:    Optional[str] = None
    product:       Optional[BookingProduct] = None
    total_price:   Optional[Money] = None
    question_list: List[BookingQuestion] = []
    person_list:   List[BookingPerson] = []


class Booking(ProviderModel):
    id:                         Optional[str] = None
    code:                       Optional[str] = None
    state:                      Optional[str] = None   # OPEN|PENDING|CONFIRMED|REJECTED|CANCELLED
    is_complete:                Optional[bool] = None
    payment_state:              Optional[str] = None
    can_commit:                 Optional[bool] = None
    lead_passenger_name:        Optional[str] = None
    partner_external_reference: Optional[str] = None
    is_sandboxed:               Optional[bool] = None
    voucher_url:                Optional[str] = None
    total_price:                Optional[Money] = None
    question_list:              List[BookingQuestion] = []
    availability_list:          List[BookingAvailability] = []
    created_at:                 Optional[str] = None
    confirmed_at:               Optional[str] = None

    @classmethod
    def from_provider(cls, data: dict) -> "Booking":
        """Validate a provider booking, unwrapping nested node connections."""
        data = dict(data)
        data["questionList"] = _unwrap_nodes(data.get("questionList"))
        availabilities = []
        for avail in _unwrap_nodes(data.get("availabilityList")):
            avail = dict(avail)
            avail["questionList"] = _unwrap_nodes(avail.get("questionList"))
            persons = []
            for person in _unwrap_nodes(avail.get("personList")):
                person = dict(person)
                person["questionList"] = _unwrap_nodes(person.get("questionList"))
                persons.append(person)
            avail["personList"] = persons
            availabilities.append(avail)
        data["availabilityList"] = availabilities
        return cls.model_validate(data)


# ── Request bodies ──────────────────────────────────────────────

class OptionAnswer(ProviderModel):
    id:    str
    value: str


class CategoryUnits(ProviderModel):
    id:    str
    units: int = Field(ge=0)


class AvailabilityUpdate(ProviderModel):
    option_list:           Optional[List[OptionAnswer]] = None
    pricing_category_list: Optional[List[CategoryUnits]] = None


class BookingCreateRequest(ProviderModel):
    partner_external_reference: Optional[str] = None
    consumer_trip_id:           Optional[str] = None
    auto_fill_questions:        bool = True


class AddAvailabilityRequest(ProviderModel):
    availability_id: str


class SimplifiedGuest(ProviderModel):
    first_name:    str
    last_name:     str
    email:         Optional[str] = None
    phone:         Optional[str] = None
    guest_type_id: Optional[str] = None
    is_lead_guest: bool = False


class QuestionAnswerInput(ProviderModel):
    id:    str
    value: str


class PersonAnswers(ProviderModel):
    id:            str
    question_list: List[QuestionAnswerInput] = []


class AvailabilityAnswers(ProviderModel):
    id:            str
    question_list: List[QuestionAnswerInput] = []
    person_list:   List[PersonAnswers] = []


class AnswerQuestionsRequest(ProviderModel):
    customer_email:    Optional[str] = None
    customer_phone:    Optional[str] = None
    guests:            Optional[List[SimplifiedGuest]] = None
    question_list:     Optional[List[QuestionAnswerInput]] = None
    availability_list: Optional[List[AvailabilityAnswers]] = None


class CommitRequest(ProviderModel):
    booking_id:            str
    wait_for_confirmation: bool = True
    max_wait_seconds:      int = 60
    product_id:            Optional[str] = None


class PersonQuestions(ProviderModel):
    person_id:   str
    category:    Optional[str] = None
    is_complete: bool = False
    questions:   List[BookingQuestion] = []


class AvailabilityQuestions(ProviderModel):
    availability_id:  str
    product_name:     Optional[str] = None
    date:             Optional[str] = None
    questions:        List[BookingQuestion] = []
    person_questions: List[PersonQuestions] = []


class QuestionsSummary(ProviderModel):
    booking_questions:      List[BookingQuestion] = []
    availability_questions: List[AvailabilityQuestions] = []
    can_commit:             bool = False
