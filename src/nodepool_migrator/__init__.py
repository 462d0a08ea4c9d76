"""Blue-green node pool upgrades for AKS clusters."""

__version__ = "0.1.0"
