"""
kafka-cli: consume, forward and produce Kafka messages from the command line.

Modules:
    config.py     - BrokerConfig, Subscription, ProducerConfig, argument parsing helpers
    consumer.py   - KafkaConsumerHandle (aiokafka consumer wrapper)
    producer.py   - KafkaProducerHandle (aiokafka producer wrapper)
    supervisor.py - ConnectionSupervisor (indefinite connect retry)
    render.py     - MessagePrinter (text/JSON output)
    workers/      - ConsumePipeline, ForwardSink, ProducePipeline
"""

__version__ = "0.3.0"
