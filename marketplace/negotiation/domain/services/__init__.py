from .negotiation_service import NegotiationService


__all__ = ["NegotiationService"]
