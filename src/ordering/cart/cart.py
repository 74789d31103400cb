"""Shopping Cart aggregate (CQRS): mutable until it is converted into an order.

Totals are derived, never set directly: every item change runs
`calculate_totals()`, keeping

    grand_total = subtotal + tax_amount + shipping_amount - discount_amount

Once `converted_at` is set the cart is dead and rejects every mutation.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.cart.events import CartConverted, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from ordering.domain import ordering


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier()
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    unit_tax = Float(default=0.0, min_value=0.0)
    unit_discount = Float(default=0.0, min_value=0.0)
    row_total = Float(default=0.0)
    tax_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    added_at = DateTime()

    def recalculate(self):
        self.row_total = round(self.unit_price * self.quantity, 2)
        self.tax_amount = round((self.unit_tax or 0.0) * self.quantity, 2)
        self.discount_amount = round((self.unit_discount or 0.0) * self.quantity, 2)

    def snapshot(self) -> dict:
        """Line data copied onto an order item."""
        return {
            "product_id": str(self.product_id) if self.product_id else None,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "row_total": self.row_total,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
        }


@ordering.aggregate
class ShoppingCart:
    tenant_id = Identifier()
    customer_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # For guest cart identification
    items = HasMany(CartItem)
    subtotal = Float(default=0.0)
    tax_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    shipping_amount = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="RWF")
    converted_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_items_to_convert(self):
        if self.converted_at is not None and not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart to an order"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, tenant_id=None, customer_id=None, session_id=None, currency="RWF"):
        if not customer_id and not session_id:
            raise ValidationError({"session_id": ["Session ID is required for guest carts"]})

        now = datetime.now(UTC)
        return cls(
            tenant_id=tenant_id,
            customer_id=customer_id,
            session_id=None if customer_id else session_id,
            currency=currency,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_converted(self) -> bool:
        return self.converted_at is not None

    def _assert_mutable(self):
        if self.is_converted:
            raise ValidationError({"cart": ["This cart has already been checked out"]})

    def _find_item(self, item_id) -> CartItem:
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def calculate_totals(self):
        subtotal = sum(item.row_total or 0.0 for item in self.items)
        tax_amount = sum(item.tax_amount or 0.0 for item in self.items)
        discount_amount = sum(item.discount_amount or 0.0 for item in self.items)
        self.subtotal = round(subtotal, 2)
        self.tax_amount = round(tax_amount, 2)
        self.discount_amount = round(discount_amount, 2)
        self.grand_total = round(subtotal + tax_amount + (self.shipping_amount or 0.0) - discount_amount, 2)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, sku, name, unit_price, quantity=1, product_id=None, unit_tax=0.0, unit_discount=0.0):
        """Add a product line, or increase the quantity of the same sku."""
        self._assert_mutable()

        existing = next((i for i in self.items if i.sku == sku), None)
        if existing:
            existing.quantity += quantity
            existing.recalculate()
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                sku=sku,
                name=name,
                quantity=quantity,
                unit_price=unit_price,
                unit_tax=unit_tax or 0.0,
                unit_discount=unit_discount or 0.0,
                added_at=datetime.now(UTC),
            )
            item.recalculate()
            self.add_items(item)

        self.calculate_totals()
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                sku=sku,
                quantity=quantity,
                new_grand_total=self.grand_total,
            )
        )
        return item

    def update_item_quantity(self, item_id, new_quantity):
        self._assert_mutable()
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self._find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        item.recalculate()
        self.calculate_totals()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
                new_grand_total=self.grand_total,
            )
        )

    def remove_item(self, item_id):
        self._assert_mutable()
        item = self._find_item(item_id)
        self.remove_items(item)
        self.calculate_totals()

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                item_id=str(item_id),
                new_grand_total=self.grand_total,
            )
        )

    def set_shipping_amount(self, amount):
        self._assert_mutable()
        if amount is None or amount < 0:
            raise ValidationError({"shipping_amount": ["Shipping amount cannot be negative"]})
        self.shipping_amount = amount
        self.calculate_totals()

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def mark_converted(self, order_number):
        """Consume the cart for `order_number`. Happens exactly once."""
        self._assert_mutable()
        if not self.items:
            raise ValidationError({"cart": ["Your cart is empty. Please add items before checkout."]})

        now = datetime.now(UTC)
        self.converted_at = now
        self.updated_at = now
        self.raise_(CartConverted(cart_id=str(self.id), order_number=order_number, converted_at=now))
