"""Delivery of batches to the configured sinks."""

import logging
from collections.abc import Sequence

from unitwatch.errors import SinkError
from unitwatch.models import Batch
from unitwatch.sinks import Sink

logger = logging.getLogger(__name__)


def upload(batch: Batch, sinks: Sequence[Sink]) -> None:
    """
    Push a batch to every sink in configuration order.

    The first failing sink aborts delivery to the remaining sinks.

    Raises:
        SinkError: Wrapping the first sink failure with the sink identifier.
    """
    for sink in sinks:
        try:
            sink.put(batch)
        except Exception as exc:
            raise SinkError(sink.identifier(), exc) from exc
        logger.info("Uploaded %d rows to sink %s", len(batch), sink.identifier())
