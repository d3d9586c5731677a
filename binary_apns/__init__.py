from .client import connect, ApnsClient
from .connection import Connector
from .credentials import load_ssl_context
from .errors import (APNsError, InvalidNotificationError, PayloadTooLargeError,
                     MalformedTokenError, MalformedJsonError, CredentialError,
                     TransportError, GatewayRejection,
                     CorruptFeedbackStreamError)
from .feedback import feedback_connect, FeedbackClient, FailedDevice
from .notification import Notification, NotificationPriority
from .payload import Payload, PayloadAlert
from .retrying import RetryingProxy

__all__ = ['connect', 'ApnsClient', 'Connector', 'load_ssl_context',
           'APNsError', 'InvalidNotificationError', 'PayloadTooLargeError',
           'MalformedTokenError', 'MalformedJsonError', 'CredentialError',
           'TransportError', 'GatewayRejection', 'CorruptFeedbackStreamError',
           'feedback_connect', 'FeedbackClient', 'FailedDevice',
           'Notification', 'NotificationPriority', 'Payload', 'PayloadAlert',
           'RetryingProxy']
