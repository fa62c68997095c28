"""hapke - order lifecycle backend for the Hapke food-ordering platform."""

__version__ = "0.1.0"
