"""Event records, systematic universes, covariance matrices and forward folding for neutrino cross-section analyses."""

__version__ = "0.1.0"