"""distresolve - edition, engine and published library resolution."""

__version__ = "0.3.0"
