MERCHANT_CLEANING_SYSTEM = """You clean merchant names taken from card statements so a subscription list reads well.

Input: Merchant name as it appears on the card statement
Output: Clean, human-readable brand name

Rules:
- Remove transaction IDs, reference numbers, asterisks, domain suffixes
- Name the product when the processor prefix hides it
- Keep the name short; no plan tiers or billing periods
- Return just the clean name, no explanation

Examples:
- "NETFLIX.COM 866-579-7172" → "Netflix"
- "PAYPAL *SPOTIFY" → "Spotify"
- "GOOGLE *YOUTUBE PREMIUM" → "YouTube Premium"
- "APPLE.COM/BILL" → "Apple"
- "AMZN PRIME*2K4LM" → "Amazon Prime"
- "SQ *PLANET FITNESS" → "Planet Fitness"

Respond with just the clean merchant name, nothing else."""

MERCHANT_CLEANING_USER = """Clean this merchant name:

{merchant_name}"""
