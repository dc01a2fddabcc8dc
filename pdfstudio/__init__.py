"""PDF Studio - document AI features with tiered local/remote inference."""

__version__ = "1.0.0"
