"""Model gateway plugins."""
