"""Repository layer for the try-on backend.

Provides data access abstractions for all domain entities.
Each repository is self-contained (no base classes).
"""

from tryon.repositories.customizations import CustomizationRepository
from tryon.repositories.generations import GenerationRepository
from tryon.repositories.ledger import LedgerRepository
from tryon.repositories.poses import PoseRepository
from tryon.repositories.pricing import PricingRepository
from tryon.repositories.results import ResultRepository
from tryon.repositories.uploads import UploadRepository
from tryon.repositories.users import UserRepository

__all__ = [
    "UserRepository",
    "UploadRepository",
    "PoseRepository",
    "CustomizationRepository",
    "PricingRepository",
    "GenerationRepository",
    "ResultRepository",
    "LedgerRepository",
]
