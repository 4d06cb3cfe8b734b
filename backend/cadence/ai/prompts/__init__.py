from cadence.ai.prompts.merchant_cleaning import MERCHANT_CLEANING_SYSTEM, MERCHANT_CLEANING_USER

__all__ = [
    "MERCHANT_CLEANING_SYSTEM",
    "MERCHANT_CLEANING_USER",
]
