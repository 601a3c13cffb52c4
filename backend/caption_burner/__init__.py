"""Caption burn-in and video combining service."""
