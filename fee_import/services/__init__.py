"""Import orchestration, cleanup, progress display and summary rendering."""
