"""scanner-operator: scan every container image running in a namespace, once."""

__version__ = "0.1.0"
