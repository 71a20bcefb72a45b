"""
Processors Package for seed-tools

This package contains the upload pipeline driver.
"""

from .pipeline import RunSummary, TrackerOutcome, UploadPipeline

__all__ = ['UploadPipeline', 'RunSummary', 'TrackerOutcome']
