"""Session creation helpers and preset scenarios."""
