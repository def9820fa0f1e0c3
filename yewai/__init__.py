"""Lidar map localization, pure-pursuit and longitudinal control, and chassis serial framing for a small robot vehicle."""

__version__ = "0.1.0"