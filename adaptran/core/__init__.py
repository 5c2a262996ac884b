"""Core models, estimators and the batch pipeline."""
