"""Platform backends: drawing surfaces and input sources."""
