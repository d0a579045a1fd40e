"""Process lifecycle: startup/shutdown reconciliation, liveness probing, metrics."""
