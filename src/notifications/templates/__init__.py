"""Template registry: maps an email kind to the template that renders it."""

from notifications.templates.kinds import EmailKind
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.payment_failed import PaymentFailedTemplate
from notifications.templates.payment_successful import PaymentSuccessfulTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    EmailKind.ORDER_CONFIRMATION.value: OrderConfirmationTemplate,
    EmailKind.PAYMENT_SUCCESSFUL.value: PaymentSuccessfulTemplate,
    EmailKind.PAYMENT_FAILED.value: PaymentFailedTemplate,
}


def get_template(kind):
    """Look up a template class by email kind (enum member or its value)."""
    key = kind.value if isinstance(kind, EmailKind) else kind
    template_cls = TEMPLATE_REGISTRY.get(key)
    if template_cls is None:
        raise ValueError(f"No template registered for email kind: {key}")
    return template_cls
