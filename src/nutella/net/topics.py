from typing import Optional

APPS_PREFIX = "/nutella/apps"
RUNS_LIST_CHANNEL = "app_runs_list"

SINGLE_LEVEL_WILDCARD = "+"
MULTI_LEVEL_WILDCARD = "#"


def app_topic(app_id: str, channel: str) -> str:
    """Topic of ``channel`` scoped to one application."""
    return f"{APPS_PREFIX}/{app_id}/{channel}"


def all_apps_topic(channel: str) -> str:
    """Pattern matching ``channel`` on every application."""
    return app_topic(SINGLE_LEVEL_WILDCARD, channel)


def app_id_from_topic(topic: str) -> Optional[str]:
    """Return the application id of an app-scoped topic, if it is one."""
    prefix = f"{APPS_PREFIX}/"
    if not topic.startswith(prefix):
        return None
    app_id, _, rest = topic[len(prefix):].partition("/")
    if not app_id or not rest:
        return None
    return app_id


def topic_matches(pattern: str, topic: str) -> bool:
    """Match a topic against a pattern with ``+`` and ``#`` wildcards."""
    pattern_levels = pattern.split("/")
    topic_levels = topic.split("/")

    for index, level in enumerate(pattern_levels):
        if level == MULTI_LEVEL_WILDCARD:
            return index == len(pattern_levels) - 1
        if index >= len(topic_levels):
            return False
        if level != SINGLE_LEVEL_WILDCARD and level != topic_levels[index]:
            return False

    return len(pattern_levels) == len(topic_levels)
