"""govscout: public-sector website crawler, link ranker and corpus chunker."""

__version__ = "0.1.0"
