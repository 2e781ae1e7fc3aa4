"""Content transforms shared by the asset tasks (prefixing, source maps)."""
