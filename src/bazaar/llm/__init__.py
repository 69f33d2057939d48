"""Model-backed helpers: image analysis that suggests request details."""
