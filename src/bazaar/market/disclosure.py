"""
Disclosure gate for vendor contact details.

Contact details travel with exactly one offer per request and only from the
moment that offer is confirmed. Before confirmation nothing is exposed; after
confirmation the details are frozen.
"""

from dataclasses import replace
from typing import assert_never

from .errors import InvalidTransition, ValidationError, ValidationKind
from .types import (
    Buyer,
    ContactSource,
    Offer,
    OfferStatus,
    Party,
    Request,
    SharedContactDetails,
    Vendor,
)

MISSING_PHONE = "Not provided"
PROFILE_NOTE = "Details from vendor profile."


def from_profile(vendor: Vendor) -> SharedContactDetails:
    """Copy the vendor's stored profile verbatim."""
    return SharedContactDetails(
        business_name=vendor.business_name,
        email=vendor.email,
        phone=vendor.phone or MISSING_PHONE,
        notes=PROFILE_NOTE,
        source=ContactSource.PROFILE,
    )


def edited(
    business_name: str, email: str, phone: str, notes: str | None = None
) -> SharedContactDetails:
    """Details typed in by the vendor for this one transaction."""
    missing = [
        name
        for name, value in (
            ("business_name", business_name),
            ("email", email),
            ("phone", phone),
        )
        if not value or not value.strip()
    ]
    if missing:
        raise ValidationError(
            ValidationKind.INCOMPLETE_CONTACT_DETAILS,
            "Business name, email and phone are all required",
            missing=missing,
        )
    return SharedContactDetails(
        business_name=business_name.strip(),
        email=email.strip(),
        phone=phone.strip(),
        notes=notes or None,
        source=ContactSource.EDITED,
    )


def attach(offer: Offer, details: SharedContactDetails) -> Offer:
    """Return the confirmed form of ``offer`` carrying ``details``.

    Raises:
        InvalidTransition: If the offer already discloses contact details.
    """
    if offer.shared_contact_details is not None:
        raise InvalidTransition(
            offer.status.value,
            OfferStatus.CONFIRMED.value,
            "Contact details were already shared for this offer",
        )
    return replace(
        offer, status=OfferStatus.CONFIRMED, shared_contact_details=details
    )


def visible_contact(
    offer: Offer, request: Request, viewer: Party
) -> SharedContactDetails | None:
    """Contact details ``viewer`` may see on ``offer``, if any."""
    if offer.status != OfferStatus.CONFIRMED or offer.shared_contact_details is None:
        return None
    if isinstance(viewer, Buyer):
        allowed = viewer.id == request.user_id
    elif isinstance(viewer, Vendor):
        allowed = viewer.id == offer.vendor_id
    else:
        assert_never(viewer)
    return offer.shared_contact_details if allowed else None
