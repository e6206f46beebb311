# GraphQL documents for the Booking Provider look-to-book flow.
# Discovery → product detail → availability → options → pricing →
# booking create → questions → commit → confirmation poll.

# ── Product discovery ───────────────────────────────────────────

PRODUCT_LIST_QUERY = """
query ProductList($filter: ProductFilterInput, $first: Int, $after: String) {
  productList(filter: $filter, first: $first, after: $after) {
    nodes {
      id
      name
      guidePriceFormattedText
      guidePrice
      guidePriceCurrency
      shortDescription
      maxDuration
      reviewRating
      reviewCount
      imageList { nodes { id url } }
      categoryList { nodes { id name } }
      place { cityId name }
    }
    pageInfo { hasNextPage hasPreviousPage startCursor endCursor }
    totalCount
  }
}
"""

PRODUCT_LIST_BY_PROVIDER_QUERY = """
query ProductListByProvider($filter: ProductListFilter, $page: Int, $pageSize: Int) {
  productList(filter: $filter, page: $page, pageSize: $pageSize) {
    recordCount
    unfilteredRecordCount
    nextPage
    nodes {
      id
      name
      description
      guidePrice
      guidePriceFormattedText
      guidePriceCurrency
      maxDuration
      reviewRating
      reviewCount
      imageList { id url }
      categoryList { nodes { id name } }
      place { cityId name }
    }
  }
}
"""

PRODUCT_DETAIL_QUERY = """
query Product($id: ID!) {
  product(id: $id) {
    id
    name
    description
    shortDescription
    guidePrice
    guidePriceFormattedText
    guidePriceCurrency
    maxDuration
    reviewRating
    reviewCount
    imageList { nodes { id url altText } }
    categoryList { nodes { id name slug } }
    contentList { nodes { type name description } }
    guideLanguageList { nodes { id name } }
    startPlace { name address geoCoordinate { lat lng } mapImageUrl }
    cancellationPolicy { penaltyList { nodes { formattedText } } }
    reviewList { nodes { id title content rating authorName publishedDate } }
  }
}
"""

# ── Availability ────────────────────────────────────────────────

AVAILABILITY_LIST_QUERY = """
query AvailabilityList($productId: ID!, $sessionId: String, $optionList: [AvailabilityOptionInput!]) {
  availabilityList(productId: $productId, sessionId: $sessionId, optionList: $optionList) {
    sessionId
    nodes { id date guidePriceFormattedText soldOut }
    optionList {
      nodes {
        id
        label
        value
        required
        type
        dataType
        dataFormat
      }
    }
  }
}
"""

AVAILABILITY_QUERY = """
query Availability($id: ID!) {
  availability(id: $id) {
    id
    date
    optionList {
      isComplete
      nodes {
        id
        label
        dataType
        dataFormat
        availableOptions { label value }
        answerValue
        answerFormattedText
      }
    }
  }
}
"""

AVAILABILITY_SET_OPTIONS_QUERY = """
query AvailabilitySetOptions($id: ID!, $input: AvailabilityInput!) {
  availability(id: $id, input: $input) {
    id
    optionList {
      isComplete
      nodes {
        id
        label
        dataType
        availableOptions { label value }
        answerValue
        answerFormattedText
      }
    }
  }
}
"""

AVAILABILITY_PRICING_QUERY = """
query AvailabilityPricing($id: ID!) {
  availability(id: $id) {
    id
    maxParticipants
    minParticipants
    isValid
    totalPrice { grossFormattedText netFormattedText gross net currency }
    pricingCategoryList {
      nodes {
        id
        label
        minParticipants
        maxParticipants
        maxParticipantsDepends { pricingCategoryId multiplier explanation }
        units
        unitPrice { netFormattedText grossFormattedText gross net currency }
        totalPrice { grossFormattedText gross currency }
      }
    }
  }
}
"""

AVAILABILITY_SET_PRICING_QUERY = """
query AvailabilitySetPricing($id: ID!, $input: AvailabilityInput!) {
  availability(id: $id, input: $input) {
    id
    isValid
    totalPrice { grossFormattedText gross currency }
    pricingCategoryList {
      nodes {
        id
        label
        units
        unitPrice { grossFormattedText gross }
        totalPrice { grossFormattedText gross }
      }
    }
  }
}
"""

# ── Booking ─────────────────────────────────────────────────────

BOOKING_CREATE_MUTATION = """
mutation BookingCreate($input: BookingCreateInput!) {
  bookingCreate(input: $input) {
    id
    code
    state
    isComplete
    paymentState
  }
}
"""

BOOKING_ADD_AVAILABILITY_MUTATION = """
mutation BookingAddAvailability($input: BookingAddAvailabilityInput!) {
  bookingAddAvailability(input: $input) {
    isComplete
  }
}
"""

_QUESTION_FIELDS = "id label type dataType dataFormat answerValue isRequired"

BOOKING_QUESTIONS_QUERY = """
query BookingQuestions($id: ID!) {
  booking(id: $id) {
    id
    code
    leadPassengerName
    partnerExternalReference
    state
    isSandboxed
    paymentState
    canCommit
    questionList { nodes { %(q)s autoCompleteValue } }
    availabilityList {
      nodes {
        id
        date
        product { id name }
        questionList { nodes { %(q)s } }
        personList {
          nodes {
            id
            pricingCategoryLabel
            isQuestionsComplete
            questionList { nodes { %(q)s } }
          }
        }
      }
    }
  }
}
""" % {"q": _QUESTION_FIELDS}

BOOKING_ANSWER_QUESTIONS_QUERY = """
query BookingAnswerQuestions($id: ID!, $input: BookingInput!) {
  booking(id: $id, input: $input) {
    canCommit
    questionList { nodes { id answerValue } }
  }
}
"""

BOOKING_COMMIT_MUTATION = """
mutation BookingCommit($bookingSelector: BookingSelectorInput!) {
  bookingCommit(bookingSelector: $bookingSelector) {
    code
    state
    voucherUrl
  }
}
"""

BOOKING_STATE_QUERY = """
query BookingState($id: ID!) {
  booking(id: $id) {
    id
    code
    state
    voucherUrl
    totalPrice { grossFormattedText gross currency }
  }
}
"""

BOOKING_FULL_QUERY = """
query BookingFull($id: ID!) {
  booking(id: $id) {
    id
    code
    state
    leadPassengerName
    partnerExternalReference
    isSandboxed
    paymentState
    voucherUrl
    totalPrice { grossFormattedText netFormattedText gross net currency }
    availabilityList {
      nodes {
        id
        date
        startTime
        product { id name shortDescription imageList { nodes { url } } }
        totalPrice { grossFormattedText gross currency }
        personList { nodes { id pricingCategoryLabel } }
      }
    }
    questionList { nodes { id label answerValue } }
    createdAt
    confirmedAt
  }
}
"""

BOOKING_LIST_QUERY = """
query BookingList($filter: BookingListFilterInput, $first: Int, $after: String) {
  bookingList(filter: $filter, first: $first, after: $after) {
    recordCount
    nodes {
      code
      id
      state
      totalPrice { grossFormattedText currency }
      consumerTrip {
        id
        partnerExternalReference
        consumer { id partnerExternalReference familyName }
      }
    }
  }
}
"""

BOOKING_CANCEL_MUTATION = """
mutation BookingCancel($bookingSelector: BookingSelectorInput!, $reason: String) {
  bookingCancel(bookingSelector: $bookingSelector, reason: $reason) {
    id
    code
    state
  }
}
"""

# ── Categories & places ─────────────────────────────────────────

CATEGORIES_QUERY = """
query Categories($placeId: ID) {
  categoryList(placeId: $placeId) {
    nodes { id name slug description imageUrl productCount }
  }
}
"""

PLACES_QUERY = """
query Places($parentId: ID, $type: PlaceType) {
  placeList(parentId: $parentId, type: $type) {
    nodes { id name slug type lat lng imageUrl productCount }
  }
}
"""
