"""Domain rules (validation, derived fields, save pipelines) independent of storage."""
