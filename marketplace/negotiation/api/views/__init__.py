from .offer_views import OfferViewSet


__all__ = ["OfferViewSet"]
