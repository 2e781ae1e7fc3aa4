"""Asset build pipeline for WordPress plugin sources."""

__version__ = "0.3.0"
