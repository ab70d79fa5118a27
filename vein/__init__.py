"""Configuration, catalogue sync, schema migrations and admin views for a caching RubyGems proxy."""

__version__ = "0.3.0"