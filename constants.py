"""Application-wide constants.

Tunable workflow values (undo window, retry attempts, starting delivery index)
are configured in config.Settings.
"""

# Owner notification events
EVENT_LOAD_ACCEPTED = "load_accepted"
EVENT_LOADING_STARTED = "loading_started"
EVENT_LOADING_FINISHED = "loading_finished"
EVENT_PICKUP_COMPLETED = "pickup_completed"
EVENT_DELIVERY_STARTED = "delivery_started"
EVENT_DELIVERY_COMPLETED = "delivery_completed"
EVENT_STORAGE_COMPLETED = "storage_completed"

# Payment methods collected by drivers
PAYMENT_METHOD_ALREADY_PAID = "already_paid"
PAYMENT_METHOD_MAP = {
    "cash": "cash",
    "zelle": "zelle",
    "cashier_check": "check",
    "money_order": "money_order",
    "personal_check": "check",
    "venmo": "venmo",
}
PAYMENT_METHOD_FALLBACK = "other"
PAYMENT_COLLECTED_BY_DRIVER = "driver"

# Accessorial charge keys, in display order
ACCESSORIAL_KEYS = [
    "shuttle",
    "long_carry",
    "stairs",
    "bulky",
    "packing",
    "other",
]

# Validation limits
MAX_STICKER_NUMBER_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500
MAX_NOTES_LENGTH = 1000

# Retry configuration
MAX_RETRY_ATTEMPTS = 3
RETRY_BACKOFF_FACTOR = 2
RETRY_INITIAL_DELAY = 0.05  # seconds

# Auth header carrying the verified caller identity
AUTH_USER_HEADER = "X-Auth-User-Id"

# API timeouts (in seconds)
API_TIMEOUT_DEFAULT = 10
