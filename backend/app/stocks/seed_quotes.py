"""Instruments and value ranges for the random quote generator."""

# Instruments generated when QUOTE_GENERATOR_NAMES is not set
DEFAULT_NAMES: list[str] = ["SK", "SAMSUNG", "LG"]

# Half-open ranges [low, high) in minor currency units
PRICE_RANGE: tuple[int, int] = (500, 1000)
DIVIDEND_RANGE: tuple[int, int] = (100, 500)

# Seconds between generator rounds
DEFAULT_INTERVAL = 10.0
