"""Push set-style configuration or run show commands across Junos devices over NETCONF."""

__version__ = "0.1.0"
