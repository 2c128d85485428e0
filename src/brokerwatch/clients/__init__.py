"""HTTP and admin-protocol clients for broker control planes."""

from brokerwatch.clients.base import BaseHTTPClient, RetryableHTTPError
from brokerwatch.clients.kafka_admin import KafkaAdminGateway, OffsetSummary
from brokerwatch.clients.kafka_rest import KafkaRestClient
from brokerwatch.clients.pulsar import PulsarAdminClient
from brokerwatch.clients.rabbitmq import RabbitMQManagementClient

__all__ = [
    "BaseHTTPClient",
    "KafkaAdminGateway",
    "KafkaRestClient",
    "OffsetSummary",
    "PulsarAdminClient",
    "RabbitMQManagementClient",
    "RetryableHTTPError",
]
