"""PECS Tutor: adaptive difficulty for picture exchange practice."""

__version__ = "0.1.0"
