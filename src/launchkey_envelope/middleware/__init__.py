"""Web framework integrations."""
