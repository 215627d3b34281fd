from datetime import date

LOGGER_NAME = "meal-delivery"

SERVICE_FOOD = "Food"
SERVICE_MEAL = "Meal"
SERVICE_BOXES = "Boxes"
SERVICE_CUSTOM = "Custom"
SERVICE_PRODUCE = "Produce"
SERVICE_EQUIPMENT = "Equipment"

# Sunday-first, matching the Sunday-Saturday billing week.
WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

DEFAULT_CUTOFF_DAY = "Friday"
DEFAULT_CUTOFF_TIME = "17:00"
DELIVERY_SEARCH_DAYS = 14

# Boxes without a vendor are stored but never promoted.
FALLBACK_TAKE_EFFECT_DATE = date(2099, 12, 31)

ORDER_NUMBER_FLOOR = 100000

UPCOMING_STATUS_SCHEDULED = "scheduled"
UPCOMING_STATUS_PROCESSED = "processed"

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_BILLING_PENDING = "billing_pending"
ORDER_STATUS_COMPLETED = "completed"

BILLING_STATUS_PENDING = "pending"
BILLING_STATUS_SUCCESS = "success"
BILLING_STATUS_FAILED = "failed"

BILLING_UPDATE_SUCCESSFUL = "billing_successful"
BILLING_UPDATE_FAILED = "billing_failed"
BILLING_UPDATE_PENDING = "billing_pending"
BILLING_UPDATE_STATUSES = (
    BILLING_UPDATE_SUCCESSFUL,
    BILLING_UPDATE_FAILED,
    BILLING_UPDATE_PENDING,
)

DEFAULT_UPDATED_BY = "Admin"
