"""Conversion from domain objects and read models to API schemas."""

from marketplace.api.schemas import (
    AdminOrderResponse,
    CartItemSchema,
    CartResponse,
    OrderAddressSchema,
    OrderItemSchema,
    OrderResponse,
    OrdersListResponse,
    OrderStatusHistorySchema,
    OrderSummarySchema,
    PaymentMethodSchema,
    PriceSchema,
    ReturnResponse,
    ReturnsListResponse,
)
from marketplace.application.cart_service import CartView
from marketplace.application.pagination import Page
from marketplace.domain.entities import Order, ReturnRequest


def cart_to_response(view: CartView) -> CartResponse:
    """Convert CartView to CartResponse."""
    items = [
        CartItemSchema(
            id=line.id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            product_name=line.product_name,
            sku=line.sku,
            attributes=line.attributes,
            quantity=line.quantity,
            unit_price=PriceSchema(amount=line.unit_price_cents, currency=line.currency),
            line_total=PriceSchema(amount=line.line_total_cents, currency=line.currency),
            added_at=line.added_at,
        )
        for line in view.lines
    ]
    subtotal = (
        PriceSchema(amount=view.subtotal_cents, currency=view.currency)
        if view.currency
        else None
    )
    return CartResponse(
        id=view.id,
        status=view.status,
        anonymous_token=view.anonymous_token,
        user_id=view.user_id,
        items=items,
        subtotal=subtotal,
        total_quantity=view.total_quantity,
        item_count=view.line_count,
        version=view.version,
        updated_at=view.updated_at,
    )


def _order_fields(order: Order) -> dict:
    def price(cents: int) -> PriceSchema:
        return PriceSchema(amount=cents, currency=order.currency)

    return {
        "id": order.id,
        "buyer_id": order.buyer_id,
        "cart_id": order.cart_id,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "items": [
            OrderItemSchema(
                id=line.id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                seller_id=line.seller_id,
                product_name=line.product_name,
                sku=line.sku,
                attributes=line.attributes,
                quantity=line.quantity,
                unit_price=price(line.unit_price_cents),
                line_total=price(line.line_total_cents),
                status=line.item_status.value,
            )
            for line in order.lines
        ],
        "subtotal": price(order.subtotal_cents),
        "tax": price(order.tax_cents),
        "shipping": price(order.shipping_cents),
        "total": price(order.total_cents),
        "refunded": price(order.refunded_amount_cents),
        "shipping_address": OrderAddressSchema(**order.shipping_address.to_dict()),
        "billing_address": OrderAddressSchema(**order.billing_address.to_dict()),
        "payment_method": PaymentMethodSchema(**order.payment_method.to_dict()),
        "shipping_method": order.shipping_method,
        "notes_by_buyer": order.notes_by_buyer,
        "payment_transaction_id": order.payment_transaction_id,
        "tracking_number": order.tracking_number,
        "carrier": order.carrier,
        "status_history": [
            OrderStatusHistorySchema(
                from_status=entry.from_status,
                to_status=entry.to_status,
                actor_role=entry.actor_role,
                actor_id=entry.actor_id,
                reason=entry.reason,
                created_at=entry.created_at,
            )
            for entry in order.status_history
        ],
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def order_to_response(order: Order) -> OrderResponse:
    """Convert Order to OrderResponse (buyer view, no internal notes)."""
    return OrderResponse(**_order_fields(order))


def order_to_admin_response(order: Order) -> AdminOrderResponse:
    """Convert Order to AdminOrderResponse (seller and admin view)."""
    return AdminOrderResponse(**_order_fields(order), internal_notes=order.internal_notes)


def order_to_summary(order: Order) -> OrderSummarySchema:
    """Convert Order to OrderSummarySchema."""
    return OrderSummarySchema(
        id=order.id,
        buyer_id=order.buyer_id,
        status=order.status.value,
        payment_status=order.payment_status.value,
        total=PriceSchema(amount=order.total_cents, currency=order.currency),
        item_count=sum(line.quantity for line in order.lines),
        seller_ids=order.seller_ids,
        created_at=order.created_at,
    )


def orders_page_to_response(page: Page[Order]) -> OrdersListResponse:
    return OrdersListResponse(
        results=[order_to_summary(order) for order in page.results],
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        total_results=page.total_results,
    )


def return_to_response(request: ReturnRequest) -> ReturnResponse:
    """Convert ReturnRequest to ReturnResponse."""
    return ReturnResponse(
        id=request.id,
        order_id=request.order_id,
        order_line_id=request.order_line_id,
        buyer_id=request.buyer_id,
        seller_id=request.seller_id,
        quantity=request.quantity,
        reason=request.reason,
        status=request.status.value,
        seller_notes=request.seller_notes,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def returns_page_to_response(page: Page[ReturnRequest]) -> ReturnsListResponse:
    return ReturnsListResponse(
        results=[return_to_response(request) for request in page.results],
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        total_results=page.total_results,
    )
