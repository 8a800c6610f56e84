"""API schemas for the marketplace API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from marketplace.domain.state_machines import OrderStatus, ReturnStatus


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in smallest currency unit (cents)")
    currency: str = Field(default="USD", min_length=3, max_length=3, description="Currency code")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Number of pages")
    total_results: int = Field(..., description="Total number of items")


# ============================================================================
# Cart Schemas
# ============================================================================


class CartItemAddRequest(BaseModel):
    """Request to add units of a variant to a cart."""

    product_id: str = Field(..., min_length=1, description="Product ID")
    variant_id: str = Field(..., min_length=1, description="Variant ID")
    quantity: int = Field(default=1, ge=1, description="Units to add")


class CartItemUpdateRequest(BaseModel):
    """Request to set a cart line's quantity."""

    quantity: int = Field(..., ge=1, description="New quantity for the line")


class CartMergeRequest(BaseModel):
    """Request to merge an anonymous cart into the caller's cart."""

    anonymous_cart_token: str = Field(
        ..., min_length=1, description="Token of the anonymous cart to merge"
    )


class CartItemSchema(BaseModel):
    """Line in a cart."""

    id: str = Field(..., description="Cart line ID")
    product_id: str = Field(..., description="Product ID")
    variant_id: str = Field(..., description="Variant ID")
    product_name: str | None = Field(default=None, description="Current product name")
    sku: str | None = Field(default=None, description="Variant SKU")
    attributes: dict[str, str] = Field(default_factory=dict, description="Variant attributes")
    quantity: int = Field(..., ge=1, description="Quantity")
    unit_price: PriceSchema = Field(..., description="Price snapshot taken when added")
    line_total: PriceSchema = Field(..., description="Unit price times quantity")
    added_at: datetime = Field(..., description="When the line was added")


class CartResponse(BaseModel):
    """Cart with recomputed totals."""

    id: str = Field(..., description="Cart ID")
    status: str = Field(..., description="Cart status")
    anonymous_token: str | None = Field(
        default=None, description="Token for anonymous carts"
    )
    user_id: str | None = Field(default=None, description="Owning account")
    items: list[CartItemSchema] = Field(default_factory=list, description="Cart lines")
    subtotal: PriceSchema | None = Field(
        default=None, description="Sum of line totals (absent for an empty cart)"
    )
    total_quantity: int = Field(..., description="Units across all lines")
    item_count: int = Field(..., description="Number of lines")
    version: int = Field(..., description="Optimistic concurrency version")
    updated_at: datetime = Field(..., description="Last modification")


# ============================================================================
# Order Schemas
# ============================================================================


class PlaceOrderRequest(BaseModel):
    """Request to place an order from the caller's active cart."""

    shipping_address_id: str = Field(..., min_length=1, description="Saved shipping address")
    billing_address_id: str = Field(..., min_length=1, description="Saved billing address")
    payment_method_id: str = Field(..., min_length=1, description="Saved payment method")
    shipping_method: str = Field(default="standard", description="Shipping method label")
    cart_id: str | None = Field(
        default=None, description="Explicit cart (defaults to the active cart)"
    )
    notes: str | None = Field(default=None, max_length=1000, description="Buyer notes")


class OrderAddressSchema(BaseModel):
    """Shipping or billing address snapshot."""

    full_name: str | None = Field(default=None, description="Recipient name")
    line1: str = Field(..., description="Address line 1")
    line2: str | None = Field(default=None, description="Address line 2")
    city: str = Field(..., description="City")
    state: str | None = Field(default=None, description="State/Province")
    postal_code: str = Field(..., description="Postal/ZIP code")
    country: str = Field(..., description="Country code (ISO 3166-1 alpha-2)")
    phone: str | None = Field(default=None, description="Contact phone")


class PaymentMethodSchema(BaseModel):
    """Payment method summary snapshot."""

    type: str = Field(..., description="Method type")
    card_brand: str | None = Field(default=None, description="Card brand")
    last_four_digits: str | None = Field(default=None, description="Last four card digits")
    payment_gateway: str | None = Field(default=None, description="Gateway")


class OrderItemSchema(BaseModel):
    """Line in an order."""

    id: str = Field(..., description="Order line ID")
    product_id: str = Field(..., description="Product ID")
    variant_id: str = Field(..., description="Variant ID")
    seller_id: str = Field(..., description="Seller owning the product")
    product_name: str = Field(..., description="Product name at time of order")
    sku: str = Field(..., description="Variant SKU")
    attributes: dict[str, str] = Field(default_factory=dict, description="Variant attributes")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    unit_price: PriceSchema = Field(..., description="Unit price at time of order")
    line_total: PriceSchema = Field(..., description="Line total")
    status: str = Field(..., description="Item fulfilment status")


class OrderStatusHistorySchema(BaseModel):
    """Status history entry for audit trail."""

    from_status: str | None = Field(default=None, description="Previous status")
    to_status: str = Field(..., description="New status")
    actor_role: str = Field(..., description="Role that made the change")
    actor_id: str | None = Field(default=None, description="Account that made the change")
    reason: str | None = Field(default=None, description="Reason for transition")
    created_at: datetime = Field(..., description="When transition occurred")


class OrderResponse(BaseModel):
    """Order details response."""

    id: str = Field(..., description="Order ID")
    buyer_id: str = Field(..., description="Buyer account")
    cart_id: str = Field(..., description="Source cart ID")
    status: str = Field(..., description="Current order status")
    payment_status: str = Field(..., description="Payment status")
    items: list[OrderItemSchema] = Field(..., description="Order items")
    subtotal: PriceSchema = Field(..., description="Subtotal")
    tax: PriceSchema = Field(..., description="Tax")
    shipping: PriceSchema = Field(..., description="Shipping cost")
    total: PriceSchema = Field(..., description="Order total")
    refunded: PriceSchema = Field(..., description="Amount refunded so far")
    shipping_address: OrderAddressSchema = Field(..., description="Shipping address")
    billing_address: OrderAddressSchema = Field(..., description="Billing address")
    payment_method: PaymentMethodSchema = Field(..., description="Payment method summary")
    shipping_method: str = Field(..., description="Shipping method")
    notes_by_buyer: str | None = Field(default=None, description="Buyer notes")
    payment_transaction_id: str | None = Field(
        default=None, description="Simulated payment transaction ID"
    )
    tracking_number: str | None = Field(
        default=None, description="Shipment tracking number"
    )
    carrier: str | None = Field(default=None, description="Shipping carrier")
    status_history: list[OrderStatusHistorySchema] = Field(
        default_factory=list, description="Status transitions"
    )
    created_at: datetime = Field(..., description="When created")
    updated_at: datetime = Field(..., description="When last updated")


class AdminOrderResponse(OrderResponse):
    """Order details including internal notes."""

    internal_notes: str | None = Field(default=None, description="Seller/admin notes")


class OrderSummarySchema(BaseModel):
    """Order summary for listings."""

    id: str = Field(..., description="Order ID")
    buyer_id: str = Field(..., description="Buyer account")
    status: str = Field(..., description="Current status")
    payment_status: str = Field(..., description="Payment status")
    total: PriceSchema = Field(..., description="Order total")
    item_count: int = Field(..., description="Number of units")
    seller_ids: list[str] = Field(default_factory=list, description="Sellers in the order")
    created_at: datetime = Field(..., description="When created")


class OrdersListResponse(PaginatedResponse):
    """Paginated list of orders."""

    results: list[OrderSummarySchema] = Field(..., description="List of orders")


class OrderCancelRequest(BaseModel):
    """Request to cancel an order."""

    reason: str | None = Field(default=None, max_length=500, description="Cancellation reason")


class SellerOrderStatusRequest(BaseModel):
    """Seller request to move an order."""

    status: OrderStatus = Field(..., description="Target status")
    tracking_number: str | None = Field(
        default=None, description="Required when moving to shipped"
    )
    carrier: str | None = Field(default=None, description="Shipping carrier")
    notes: str | None = Field(default=None, max_length=1000, description="Seller note")


class AdminOrderStatusRequest(BaseModel):
    """Administrator status override."""

    status: OrderStatus = Field(..., description="Target status")
    notes: str | None = Field(default=None, max_length=1000, description="Admin note")


class AdminRefundRequest(BaseModel):
    """Administrator refund request."""

    amount_cents: int = Field(..., gt=0, description="Amount to refund in cents")
    reason: str = Field(..., min_length=1, max_length=500, description="Refund reason")
    order_line_id: str | None = Field(
        default=None, description="Line the refund applies to, if any"
    )


# ============================================================================
# Return Schemas
# ============================================================================


class ReturnCreateRequest(BaseModel):
    """Buyer request to return units of a delivered line."""

    order_line_id: str = Field(..., min_length=1, description="Order line to return")
    quantity: int = Field(..., ge=1, description="Units to return")
    reason: str = Field(..., min_length=1, max_length=1000, description="Return reason")


class ReturnStatusRequest(BaseModel):
    """Seller request to move a return."""

    status: ReturnStatus = Field(..., description="Target return status")
    notes: str | None = Field(
        default=None, max_length=1000, description="Seller notes (required to reject)"
    )


class ReturnResponse(BaseModel):
    """Return request details."""

    id: str = Field(..., description="Return request ID")
    order_id: str = Field(..., description="Order ID")
    order_line_id: str = Field(..., description="Order line ID")
    buyer_id: str = Field(..., description="Requesting buyer")
    seller_id: str = Field(..., description="Deciding seller")
    quantity: int = Field(..., description="Units to return")
    reason: str = Field(..., description="Buyer's reason")
    status: str = Field(..., description="Return status")
    seller_notes: str | None = Field(default=None, description="Seller notes")
    created_at: datetime = Field(..., description="When requested")
    updated_at: datetime = Field(..., description="When last updated")


class ReturnsListResponse(PaginatedResponse):
    """Paginated list of return requests."""

    results: list[ReturnResponse] = Field(..., description="List of returns")
