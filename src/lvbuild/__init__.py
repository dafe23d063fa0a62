"""lvbuild - release builder for the Levython runtime."""

__version__ = "0.1.0"
