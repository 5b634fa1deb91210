"""
User benefits: classification, display formatting and redemption.
"""

from mahoya.modules.benefits.ledger import classify, format_brl, format_discount, partition
from mahoya.modules.benefits.service import BenefitService

__all__ = ["BenefitService", "classify", "format_brl", "format_discount", "partition"]
