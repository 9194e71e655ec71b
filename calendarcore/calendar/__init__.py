"""Calendar value types and the recurrence engine."""
