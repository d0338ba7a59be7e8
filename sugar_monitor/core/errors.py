"""Error types shared across the alerting pipeline."""


class ConfigurationError(Exception):
    """Required environment-sourced setting is missing or invalid."""


class PersistenceError(Exception):
    """A reading or alert write could not be stored."""


class NotificationError(Exception):
    """Base class for notification delivery failures."""


class NotifierConnectionError(NotificationError):
    """Could not connect or authenticate to the mail transport."""


class NotifierSendError(NotificationError):
    """The transport accepted the connection but the message was not sent."""
