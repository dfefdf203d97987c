"""Move Azure VMs and load balancers to zone-aware configurations."""

__version__ = "0.1.0"
