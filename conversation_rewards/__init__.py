"""Conversation rewards: relevance-weighted scoring of issue and pull request comments."""

__version__ = "0.1.0"
