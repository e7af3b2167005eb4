"""
Couche Proxy: appels HTTP vers l'API FHIRfly.
"""

from .client import FhirflyClient

__all__ = ["FhirflyClient"]
