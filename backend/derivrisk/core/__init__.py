"""Engine configuration and market calendar."""
