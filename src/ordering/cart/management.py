"""Cart management: cart creation."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class CreateCart:
    """Create a new shopping cart for a registered customer or guest session."""

    tenant_id = Identifier()
    customer_id = Identifier()  # Optional for guest carts
    session_id = String(max_length=255)
    currency = String(max_length=3, default="RWF")


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = ShoppingCart.create(
            tenant_id=command.tenant_id,
            customer_id=command.customer_id,
            session_id=command.session_id,
            currency=command.currency or "RWF",
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)
