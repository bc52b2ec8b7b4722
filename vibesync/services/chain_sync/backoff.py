"""Exponential backoff helper."""


def exponential_delay(
    attempt: int,
    min_delay: float,
    max_delay: float,
    factor: float = 2.0,
) -> float:
    """
    Delay before retry number `attempt` (0-based): min, min*2, min*4 ... capped.

    Args:
        attempt: Failed attempts so far minus one
        min_delay: First delay in seconds
        max_delay: Upper bound in seconds
        factor: Growth factor

    Returns:
        Delay in seconds
    """
    if attempt <= 0:
        return min(min_delay, max_delay)
    # Avoid float overflow for long outages
    exponent = min(attempt, 64)
    return min(max_delay, min_delay * factor ** exponent)
