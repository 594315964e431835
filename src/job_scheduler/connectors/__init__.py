"""Interactive front-ends."""
