"""Filter translation, batch engine, refinement and streaming."""
