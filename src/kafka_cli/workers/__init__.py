"""
Long-running pipelines selected by the CLI command.

Workers:
    consume_worker.py - ConsumePipeline (consume, print, forward, acknowledge)
    forward_sink.py   - ForwardSink (republish consumed messages)
    produce_worker.py - ProducePipeline (interval publishing with retry)
"""

from kafka_cli.workers.consume_worker import ConsumePipeline, PipelineState
from kafka_cli.workers.forward_sink import ForwardSink
from kafka_cli.workers.produce_worker import ProducePipeline

__all__ = [
    "ConsumePipeline",
    "PipelineState",
    "ForwardSink",
    "ProducePipeline",
]
