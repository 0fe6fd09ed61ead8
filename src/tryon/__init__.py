"""Virtual try-on generation backend."""
