"""Pub/sub and request/response transports used by the framework bots."""

from nutella.net.line_broker import BrokerMessage, LineBroker, LineBrokerClient
from nutella.net.topics import (
	RUNS_LIST_CHANNEL,
	all_apps_topic,
	app_id_from_topic,
	app_topic,
	topic_matches,
)
from nutella.net.transport import InMemoryTransport, MessageCallback, RequestHandler, Transport

__all__ = [
	"BrokerMessage",
	"InMemoryTransport",
	"LineBroker",
	"LineBrokerClient",
	"MessageCallback",
	"RUNS_LIST_CHANNEL",
	"RequestHandler",
	"Transport",
	"all_apps_topic",
	"app_id_from_topic",
	"app_topic",
	"topic_matches",
]
