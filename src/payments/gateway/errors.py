"""Gateway error catalogue: provider error codes and messages to shopper-safe text.

Pure lookups, no side effects. Raw provider messages and codes are logged
by the adapter; only the strings in these tables ever reach a shopper.
"""

GENERIC_FAILURE_MESSAGE = (
    "Payment processing failed. Please check your payment details and try again, "
    "or use a different payment method."
)
CONFIGURATION_ERROR_MESSAGE = "Payment configuration error. Please contact support."
INCOMPLETE_CARD_MESSAGE = "Please check your payment details: card details are incomplete."
UNSUPPORTED_METHOD_MESSAGE = "This payment method is not supported. Please choose a different payment method."

_EXPIRED = "Your card has expired. Please use a different payment method."
_DECLINED = "Your card was declined. Please use a different payment method."
_INSUFFICIENT = "Insufficient funds. Please use a different payment method."
_ENCRYPTION = "Card encryption error. Please verify your card details and try again."
_INVALID_REQUEST = "Invalid payment request. Please check your payment details."

ERROR_CODE_MESSAGES = {
    "10400": "Invalid payment request. Please check your payment details and try again.",
    "10409": "A customer with this information already exists. Please try again.",
    "1134422": _EXPIRED,
    "1135422": "Invalid card expiry date. Please check and try again.",
    "1137400": _ENCRYPTION,
    "1141400": "Payment redirect URL is invalid. Please contact support.",
    "CARD_EXPIRED": _EXPIRED,
    "CARD_DECLINED": _DECLINED,
    "INSUFFICIENT_FUNDS": _INSUFFICIENT,
    "INVALID_CARD": "Invalid card details. Please check your card information and try again.",
    "REDIRECT_URL_INVALID": CONFIGURATION_ERROR_MESSAGE,
    "REQUEST_NOT_VALID": _INVALID_REQUEST,
}

# Checked in order against the lower-cased raw message; first hit wins.
MESSAGE_KEYWORD_MESSAGES = (
    ("decrypt", _ENCRYPTION),
    ("encrypt", _ENCRYPTION),
    ("expired", _EXPIRED),
    ("declined", _DECLINED),
    ("insufficient", _INSUFFICIENT),
    ("redirect url is invalid", CONFIGURATION_ERROR_MESSAGE),
    ("request is not valid", _INVALID_REQUEST),
    ("invalid", "Invalid payment information. Please check your details and try again."),
)

FIELD_LABELS = {
    "card.nonce": "Payment security code",
    "card.encrypted_card_number": "Card number",
    "card.encrypted_expiry_month": "Expiry month",
    "card.encrypted_expiry_year": "Expiry year",
    "card.encrypted_cvv": "CVV",
}

# (fragment of the provider's validation message, phrasing shown to the shopper)
VALIDATION_PHRASES = (
    ("size must be between", "{label} format is incorrect"),
    ("required", "{label} is required"),
)


class GatewayError(Exception):
    """A gateway call failed. `user_message` is safe to show; `detail` is for logs."""

    def __init__(self, user_message: str, detail: str | None = None):
        super().__init__(detail or user_message)
        self.user_message = user_message
        self.detail = detail or user_message


def field_label(field_name: str) -> str:
    if field_name in FIELD_LABELS:
        return FIELD_LABELS[field_name]
    label = field_name.replace("_", " ").replace(".", " ")
    return label[:1].upper() + label[1:]


def validation_error_message(validation_errors) -> str | None:
    """Summarize provider field validation errors, or None when there are none."""
    parts = []
    for error in validation_errors or ():
        label = field_label(error.get("field_name") or "unknown")
        message = error.get("message") or "Invalid"
        phrase = next((template for fragment, template in VALIDATION_PHRASES if fragment in message), None)
        parts.append(phrase.format(label=label) if phrase else f"{label}: {message}")

    if not parts:
        return None
    return "Please check your payment details: " + ", ".join(parts)


def user_friendly_message(error_code: str | None, raw_message: str | None, validation_errors=()) -> str:
    """Map a provider error to the message shown to the shopper."""
    from_validation = validation_error_message(validation_errors)
    if from_validation:
        return from_validation

    if error_code and str(error_code) in ERROR_CODE_MESSAGES:
        return ERROR_CODE_MESSAGES[str(error_code)]

    lowered = (raw_message or "").lower()
    for keyword, message in MESSAGE_KEYWORD_MESSAGES:
        if keyword in lowered:
            return message

    return GENERIC_FAILURE_MESSAGE


def message_from_error_body(body: dict | None) -> str:
    """Map a provider error response body ({"error": {...}} or {"message": ...})."""
    body = body or {}
    error = body.get("error")
    if isinstance(error, dict):
        return user_friendly_message(
            error.get("code"),
            error.get("message"),
            error.get("validation_errors") or (),
        )
    return user_friendly_message(None, body.get("message"))
