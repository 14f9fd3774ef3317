"""Surface protocol, PNG codec and the canvas adapter service."""
