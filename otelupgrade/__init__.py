"""Version-by-version upgrade routines for OpenTelemetry Collector resources."""

__version__ = "0.1.0"
__all__ = ["collector", "configyaml", "steps_early", "steps_late", "upgrade"]