"""
Persistence adapters.

Services depend on these repositories instead of opening sessions
themselves. Every repository takes the explicit Database handle.
"""

from .nft_repository import NFTRepository
from .plan_repository import PlanRepository
from .user_repository import UserRepository

__all__ = ["NFTRepository", "PlanRepository", "UserRepository"]
