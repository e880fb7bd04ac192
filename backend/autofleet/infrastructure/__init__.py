"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .paypack_client import PaypackGateway, get_payment_gateway

__all__ = ['PaypackGateway', 'get_payment_gateway']
