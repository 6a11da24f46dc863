"""Uniform adapters for pulling exam metadata out of learning management systems."""
