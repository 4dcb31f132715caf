"""Domain intelligence for the telemetry dashboard."""
