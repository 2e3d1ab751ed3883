"""HaloSync - HaloPSA connection management and knowledge-base synchronization."""

__version__ = "0.1.0"
