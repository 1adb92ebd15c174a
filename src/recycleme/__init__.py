"""Find out which bin a product's packaging goes into."""

__version__ = "0.3.0"
