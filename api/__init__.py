"""HTTP API for seed phrase sessions."""
