"""HTTP surface of the Forum Stage application."""
