# backend/freshcorner/routes/addresses.py
"""
Saved delivery address routes. Addresses belonging to another user answer
404, same as a missing one.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..models import Address
from ..responses import ok, from_error, server_error
from ..services import address_service
from ..validation import (
    ModelValidationPolicy,
    ServiceError,
    validate_payload,
    enforce_rules_address,
)

ADDRESS_POLICY = ModelValidationPolicy(
    writable_fields={
        "label", "label_custom", "recipient_name", "phone",
        "address_line1", "address_line2", "floor_number", "apartment_number",
        "landmark", "area", "thana", "district",
        "latitude", "longitude", "google_place_id", "is_default",
    },
    required_on_create={"recipient_name", "phone", "address_line1"},
)

addresses_bp = Blueprint("addresses", __name__, url_prefix="/api/addresses")


@addresses_bp.get("")
@require_auth
def list_addresses_route():
    try:
        addresses = address_service.list_addresses(g.current_user.id)
    except Exception:
        return server_error("load addresses")
    return ok({"addresses": [a.to_dict() for a in addresses]})


@addresses_bp.post("")
@require_auth
def create_address_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Address, payload=payload, policy=ADDRESS_POLICY, partial=False)
        enforce_rules_address(patch)
        address = address_service.create_address(g.current_user.id, patch=patch)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("save address")

    return ok({"address": address.to_dict()}, message="Address saved", status=201)


@addresses_bp.put("/<int:address_id>")
@require_auth
def update_address_route(address_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Address, payload=payload, policy=ADDRESS_POLICY, partial=True)
        enforce_rules_address(patch)
        address = address_service.update_address(g.current_user.id, address_id, patch=patch)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update address")

    return ok({"address": address.to_dict()}, message="Address updated")


@addresses_bp.delete("/<int:address_id>")
@require_auth
def delete_address_route(address_id: int):
    try:
        address_service.delete_address(g.current_user.id, address_id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("delete address")

    return ok(message="Address deleted")


@addresses_bp.put("/<int:address_id>/default")
@require_auth
def set_default_address_route(address_id: int):
    try:
        address = address_service.set_default_address(g.current_user.id, address_id)
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("set default address")

    return ok({"address": address.to_dict()}, message="Default address updated")
