"""
app/core/errors.py - Typed, recoverable errors for the cart and order engines.

Every error carries a stable ``code`` (returned to clients as JSON) and the HTTP status the
API layer answers with. ``StockExceeded`` is the odd one out: it is a warning payload
attached to a successful cart mutation and is never raised by cart operations.
"""
from typing import Any, Dict, List, Optional

from pydantic import ValidationError


class GroceryError(Exception):
    """Base class for every error the engines report to their caller."""

    code = "error"
    http_status = 400

    def __init__(self, detail: str, **context: Any):
        self.detail = detail
        self.context = context
        super().__init__(detail)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "detail": self.detail}
        if self.context:
            body["context"] = self.context
        return body


# --- Cart ---------------------------------------------------------------------

class ProductNotFound(GroceryError):
    code = "product_not_found"
    http_status = 404

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class OutOfStock(GroceryError):
    code = "out_of_stock"
    http_status = 409

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is currently out of stock", product_id=product_id)


class StockExceeded(GroceryError):
    """Quantity was clamped to the available stock. The mutation still succeeded."""

    code = "stock_exceeded"
    http_status = 200

    def __init__(self, product_id: str, requested: int, clamped: int):
        self.product_id = product_id
        self.requested = requested
        self.clamped = clamped
        super().__init__(
            f"Only {clamped} items available",
            product_id=product_id, requested=requested, clamped=clamped,
        )


class ItemNotInCart(GroceryError):
    code = "item_not_in_cart"
    http_status = 404

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not in the cart", product_id=product_id)


class EmptyCart(GroceryError):
    code = "empty_cart"

    def __init__(self):
        super().__init__("Cart is empty. Add products before checking out.")


class InvalidPromoCode(GroceryError):
    code = "invalid_promo_code"

    def __init__(self, code: str, reason: Optional[str] = None):
        self.promo_code = code
        self.reason = reason
        super().__init__(f"Invalid promo code {code!r}", promo_code=code, reason=reason)


class MinimumOrderNotMet(GroceryError):
    code = "minimum_order_not_met"

    def __init__(self, code: str, min_order: int, subtotal: int):
        self.promo_code = code
        self.min_order = min_order
        self.subtotal = subtotal
        super().__init__(
            f"Minimum order amount is {min_order}",
            promo_code=code, min_order=min_order, subtotal=subtotal,
        )


# --- Catalogue admin ----------------------------------------------------------

class CategoryNotFound(GroceryError):
    code = "category_not_found"
    http_status = 404

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found", category_id=category_id)


class InvalidUpdate(GroceryError):
    """A partial update that would leave a record in an invalid state."""

    code = "invalid_update"
    http_status = 422

    def __init__(self, entity: str, errors: List[Dict[str, Any]]):
        self.entity = entity
        self.errors = errors
        super().__init__(f"Invalid {entity} update", entity=entity, errors=errors)

    @classmethod
    def from_validation(cls, entity: str, exc: ValidationError) -> "InvalidUpdate":
        errors = [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors(include_url=False)
        ]
        return cls(entity, errors)


# --- Orders -------------------------------------------------------------------

class OrderNotFound(GroceryError):
    code = "order_not_found"
    http_status = 404

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class IllegalTransition(GroceryError):
    code = "illegal_transition"
    http_status = 409

    def __init__(self, order_id: str, current: str, target: str, role: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        self.role = role
        super().__init__(
            f"{role} cannot move order {order_id} from {current!r} to {target!r}",
            order_id=order_id, current=current, target=target, role=role,
        )


class AlreadyAssigned(GroceryError):
    code = "already_assigned"
    http_status = 409

    def __init__(self, order_id: str, partner_id: Optional[str]):
        self.order_id = order_id
        self.partner_id = partner_id
        super().__init__(
            f"Order {order_id} is assigned to another delivery partner",
            order_id=order_id,
        )


# --- Auth ---------------------------------------------------------------------

class UserNotFound(GroceryError):
    code = "user_not_found"
    http_status = 404

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found", user_id=user_id)


class InvalidPhone(GroceryError):
    code = "invalid_phone"
    http_status = 422

    def __init__(self):
        super().__init__("Invalid phone number format. Please enter a 10-digit number.")


class InvalidOtp(GroceryError):
    code = "invalid_otp"

    def __init__(self):
        super().__init__("Invalid or expired OTP")


class OtpExpired(GroceryError):
    code = "otp_expired"

    def __init__(self):
        super().__init__("OTP expired, please request a new one")


class TooManyOtpAttempts(GroceryError):
    code = "too_many_otp_attempts"
    http_status = 429

    def __init__(self):
        super().__init__("Too many wrong attempts, please request a new OTP")


# --- Collaborators ------------------------------------------------------------

class CollaboratorTimeout(GroceryError):
    code = "collaborator_timeout"
    http_status = 504

    def __init__(self, collaborator: str, detail: str = ""):
        self.collaborator = collaborator
        super().__init__(detail or f"{collaborator} timed out", collaborator=collaborator)


class CollaboratorUnavailable(GroceryError):
    code = "collaborator_unavailable"
    http_status = 503

    def __init__(self, collaborator: str, detail: str = ""):
        self.collaborator = collaborator
        super().__init__(detail or f"{collaborator} is unavailable", collaborator=collaborator)
