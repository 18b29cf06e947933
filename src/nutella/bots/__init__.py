"""Framework bots that keep application components in sync with the run list."""

from nutella.bots.notifier import RunListNotifier
from nutella.bots.responder import RunListResponder

__all__ = [
	"RunListNotifier",
	"RunListResponder",
]
