"""Broker adapters and the aggregator that fans out across them."""

from brokerwatch.collectors.aggregator import MetricsAggregator, build_collectors
from brokerwatch.collectors.base import BrokerCollector
from brokerwatch.collectors.kafka import KafkaCollector
from brokerwatch.collectors.pulsar import PulsarCollector, SignalPolicy
from brokerwatch.collectors.rabbitmq import RabbitMQCollector

__all__ = [
    "BrokerCollector",
    "KafkaCollector",
    "MetricsAggregator",
    "PulsarCollector",
    "RabbitMQCollector",
    "SignalPolicy",
    "build_collectors",
]
