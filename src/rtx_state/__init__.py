"""rtx-state: declarative configuration management for Yamaha RTX routers."""

__version__ = "0.1.0"
