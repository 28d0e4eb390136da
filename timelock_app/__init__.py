"""HTTP surface for the TimeLock escrow."""
