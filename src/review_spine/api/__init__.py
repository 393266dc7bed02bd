"""HTTP control surface for the review pipeline."""
