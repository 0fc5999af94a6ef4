"""Batch pipelines: column resolution, progress cursor, row processors and the batch driver."""
