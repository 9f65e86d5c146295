"""Product carbon footprint services: telemetry correlation, ERP genealogy, grid intensity."""

__version__ = "0.1.0"
