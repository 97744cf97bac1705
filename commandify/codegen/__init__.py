"""Source generation: fragments, result routing and assembly."""
