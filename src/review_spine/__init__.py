"""
review-spine - content review routing and archival pipeline.

- review_spine.core: errors, logging, settings, retry, lifecycle, schema registry
- review_spine.stores: table adapter, Graph and in-memory collaborators, event logs
- review_spine.review: intake monitor, status router, archive processor
- review_spine.scheduling: polling loops and the service manager
"""

__version__ = "0.1.0"
