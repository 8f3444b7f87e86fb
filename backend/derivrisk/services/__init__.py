"""
DerivRisk Services

Service layer containing all risk computation.
Each service has a defined interface (contract) and implementation.
"""

from derivrisk.services.base import (
    BaseService,
    ServiceError,
    ValidationError,
    ExternalAPIError,
)

__all__ = [
    "BaseService",
    "ServiceError",
    "ValidationError",
    "ExternalAPIError",
]
