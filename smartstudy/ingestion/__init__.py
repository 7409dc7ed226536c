"""Image ingestion pipeline.

Queues uploaded exam images and turns them into question-bank entries
one at a time through the assistant gateway.
"""

from smartstudy.ingestion.upload_queue import UploadQueueManager

__all__ = ["UploadQueueManager"]
