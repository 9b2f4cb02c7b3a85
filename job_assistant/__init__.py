"""Watches a job-listing page, evaluates each listing and annotates the page."""

__version__ = "0.3.0"
