"""Grid layout, cell classification and class composition."""
