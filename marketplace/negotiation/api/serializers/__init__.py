from .offer_serializers import CreateOfferRequestSerializer, OfferSerializer


__all__ = ["CreateOfferRequestSerializer", "OfferSerializer"]
