# src/shared/error_codes.py
# Central mapping that aligns with the Error Contract.
# Keep keys stable, API clients rely on these.
ERROR_CODES = {
    # ─── Validation & Requests ──────────────────────────────────────────────
    "validation_error": {
        "http": 422,
        "message": "Validation failed for one or more fields."
    },

    # ─── Authentication & Authorization ────────────────────────────────────
    "unauthorized": {
        "http": 401,
        "message": "Unauthorized. Please provide valid credentials."
    },
    "forbidden": {
        "http": 403,
        "message": "You are not allowed to perform this action."
    },

    # ─── Resources ─────────────────────────────────────────────────────────
    "not_found": {
        "http": 404,
        "message": "Resource not found."
    },
    "instance_not_found": {
        "http": 404,
        "message": "Instance not found."
    },
    "user_not_found": {
        "http": 404,
        "message": "User not found."
    },
    "conflict": {
        "http": 409,
        "message": "Resource conflict."
    },
    "instance_name_taken": {
        "http": 409,
        "message": "Instance name already exists."
    },
    "email_taken": {
        "http": 409,
        "message": "A user with this email already exists."
    },

    # ─── Lifecycle & Quota ─────────────────────────────────────────────────
    "invalid_transition": {
        "http": 409,
        "message": "Operation is not valid from the instance's current state."
    },
    "instance_busy": {
        "http": 409,
        "message": "Another operation is in flight for this instance."
    },
    "resource_busy": {
        "http": 409,
        "message": "Resource is busy, try again."
    },
    "quota_exceeded": {
        "http": 403,
        "message": "Quota exceeded."
    },

    # ─── Gateway ───────────────────────────────────────────────────────────
    "gateway_unreachable": {
        "http": 503,
        "message": "Messaging gateway is unreachable. Try again later."
    },
    "gateway_rejected": {
        "http": 502,
        "message": "Messaging gateway rejected the request."
    },
    "gateway_unexpected": {
        "http": 502,
        "message": "Messaging gateway returned an unexpected response."
    },

    # ─── Server ────────────────────────────────────────────────────────────
    "storage_failure": {
        "http": 500,
        "message": "Persistence layer error."
    },
    "internal_error": {
        "http": 500,
        "message": "Internal server error."
    },
}
