"""macsetup — declarative macOS workstation provisioning."""

__version__ = "0.1.0"
