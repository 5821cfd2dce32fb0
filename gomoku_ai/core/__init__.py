"""Cross-cutting infrastructure shared by the service, CLI and engine."""
