"""JSON shapes for API responses (camelCase keys).

Relationship fields are only emitted when the caller says they were loaded;
touching an unloaded relationship on an async session raises.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from marketplace.db.models import (
    Address,
    Negotiation,
    Offer,
    Order,
    Payment,
    ProductRequest,
    User,
)


class CamelModel(BaseModel):
    """Request body accepting camelCase (or snake_case) field names."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False
    )


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_summary(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email}


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "categories": user.categories,
        "city": user.city,
        "postalCode": user.postal_code,
        "bio": user.bio,
        "notifications": user.notifications,
        "onboardingCompleted": user.onboarding_completed,
        "createdAt": iso(user.created_at),
    }


def serialize_request(
    product_request: ProductRequest,
    with_owner: bool = False,
    with_offer_count: bool = False,
) -> dict[str, Any]:
    data = {
        "id": product_request.id,
        "userId": product_request.user_id,
        "productName": product_request.product_name,
        "category": product_request.category,
        "description": product_request.description,
        "quantity": product_request.quantity,
        "maxBudget": product_request.max_budget,
        "deliveryCity": product_request.delivery_city,
        "deliveryDistrict": product_request.delivery_district,
        "offerDeadline": iso(product_request.offer_deadline),
        "exampleImageUrl": product_request.example_image_url,
        "brandModel": product_request.brand_model,
        "dynamicFields": product_request.dynamic_fields,
        "status": product_request.status,
        "createdAt": iso(product_request.created_at),
    }
    if with_owner:
        data["user"] = {"id": product_request.user.id, "name": product_request.user.name}
    if with_offer_count:
        data["offerCount"] = len(product_request.offers)
    return data


def request_summary(product_request: ProductRequest) -> dict[str, Any]:
    return {
        "id": product_request.id,
        "productName": product_request.product_name,
        "category": product_request.category,
        "quantity": product_request.quantity,
        "maxBudget": product_request.max_budget,
        "deliveryCity": product_request.delivery_city,
        "status": product_request.status,
    }


def serialize_offer(
    offer: Offer,
    with_request: bool = False,
    with_seller: bool = False,
    with_buyer: bool = False,
) -> dict[str, Any]:
    data = {
        "id": offer.id,
        "productRequestId": offer.product_request_id,
        "sellerId": offer.seller_id,
        "price": offer.price,
        "deliveryTime": offer.delivery_time,
        "message": offer.message,
        "status": offer.status,
        "buyerResponse": offer.buyer_response,
        "respondedAt": iso(offer.responded_at),
        "createdAt": iso(offer.created_at),
    }
    if with_request:
        data["productRequest"] = request_summary(offer.product_request)
    if with_seller:
        data["seller"] = user_summary(offer.seller)
    if with_buyer:
        data["buyer"] = {
            "id": offer.product_request.user.id,
            "name": offer.product_request.user.name,
        }
    return data


def serialize_negotiation(negotiation: Negotiation, with_sender: bool = False) -> dict[str, Any]:
    data = {
        "id": negotiation.id,
        "offerId": negotiation.offer_id,
        "senderId": negotiation.sender_id,
        "message": negotiation.message,
        "proposedPrice": negotiation.proposed_price,
        "proposedDelivery": negotiation.proposed_delivery,
        "isAiGenerated": negotiation.is_ai_generated,
        "createdAt": iso(negotiation.created_at),
    }
    if with_sender:
        data["sender"] = {
            "id": negotiation.sender.id,
            "name": negotiation.sender.name,
            "role": negotiation.sender.role,
        }
    return data


def serialize_payment(payment: Payment, with_offer: bool = False) -> dict[str, Any]:
    data = {
        "id": payment.id,
        "offerId": payment.offer_id,
        "buyerId": payment.buyer_id,
        "amount": payment.amount,
        "status": payment.status,
        "createdAt": iso(payment.created_at),
        "completedAt": iso(payment.completed_at),
    }
    if with_offer:
        data["productName"] = payment.offer.product_request.product_name
    return data


def serialize_order(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "offerId": order.offer_id,
        "paymentId": order.payment_id,
        "productName": order.product_name,
        "totalAmount": order.total_amount,
        "currentStatus": order.current_status,
        "estimatedDelivery": iso(order.estimated_delivery),
        "timelineEvents": order.timeline,
        "createdAt": iso(order.created_at),
    }


def serialize_address(address: Address) -> dict[str, Any]:
    return {
        "id": address.id,
        "title": address.title,
        "fullName": address.full_name,
        "phone": address.phone,
        "addressLine": address.address_line,
        "city": address.city,
        "district": address.district,
        "postalCode": address.postal_code,
        "type": address.type,
        "isDefault": address.is_default,
        "createdAt": iso(address.created_at),
    }
