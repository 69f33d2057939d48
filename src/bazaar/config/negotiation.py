from pydantic import BaseModel


class NegotiationSettings(BaseModel):
    """
    Policy switches for the offer negotiation engine.

    Both default to the behavior the marketplace has always had: the buyer may
    answer a vendor counter with another counter, and a vendor may hold more
    than one live offer on the same request.
    """

    vendor_counter_is_final: bool = False
    single_offer_per_vendor: bool = False
