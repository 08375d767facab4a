"""Format parsers and the shared parse pipeline."""
