"""Command-line workflows of pyClusterGAM."""
