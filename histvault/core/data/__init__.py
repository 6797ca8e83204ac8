"""Data access layer: provider gateways and store writers."""
