class APNsError(Exception):
    pass


class InvalidNotificationError(APNsError):
    def __init__(self, message, notification=None):
        super().__init__(message)
        self.notification = notification


class PayloadTooLargeError(InvalidNotificationError):
    pass


class MalformedTokenError(InvalidNotificationError):
    pass


class MalformedJsonError(InvalidNotificationError):
    pass


class FrameDecodeError(APNsError):
    pass


class CredentialError(APNsError):
    pass


class CertLoadError(CredentialError):
    pass


class CertFileMissingError(CertLoadError):
    pass


class KeystoreWrongPasswordError(CertLoadError):
    pass


class TransportError(APNsError):
    # set by ApnsClient.send_all: the notifications not known to be
    # delivered and the rejections collected before the failure
    undelivered = None
    rejections = ()


class ConnectError(TransportError):
    pass


class HandshakeError(TransportError):
    pass


class WriteError(TransportError):
    pass


class ReadError(TransportError):
    pass


class CorruptFeedbackStreamError(APNsError):
    pass


class GatewayRejection(APNsError):
    def __init__(self, status, identifier, message=None):
        super().__init__(message)
        self.status = status
        self.identifier = identifier
        self.message = message

    def __repr__(self):
        return "GatewayRejection(status={}, identifier={})".format(
            self.status, self.identifier)

    def __str__(self):
        return "GatewayRejection({}: {})".format(self.status, self.message)

    def message_was_sent(self):
        # 10 - shutdown, the offending notification itself was delivered
        return self.status == 10
