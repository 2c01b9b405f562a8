from .fulfillment_service import FulfillmentService


__all__ = ["FulfillmentService"]
