"""Core infrastructure for TrustCircle: storage backends and their factories."""
