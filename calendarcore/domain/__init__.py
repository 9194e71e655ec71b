"""Controller and configuration for calendar views."""
