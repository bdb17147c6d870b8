"""Bitbucket Cloud command-line client built for machine consumption."""

__version__ = "0.1.0"
