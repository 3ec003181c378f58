"""Service layer: pure analytics and id helpers."""
