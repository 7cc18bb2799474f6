"""WorkloadPolicy — capacity utilisation of an agent."""


def capacity_utilization(active_assignments: int, max_capacity: int) -> float:
    """Percentage of an agent's capacity in use, clamped to 100.

    Raises:
        ValueError: if max_capacity is not positive or the count is negative.
    """
    if max_capacity <= 0:
        raise ValueError("max_capacity must be positive")
    if active_assignments < 0:
        raise ValueError("active_assignments cannot be negative")

    return min(100.0, active_assignments / max_capacity * 100)


def clamp_percentage(value: float) -> float:
    return max(0.0, min(100.0, float(value)))
