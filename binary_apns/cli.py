import asyncio
import json
import logging
from typing import Iterable, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from typing_extensions import Annotated

from .client import ApnsClient
from .errors import APNsError, GatewayRejection, MalformedJsonError
from .feedback import FailedDevice, FeedbackClient
from .notification import Notification
from .payload import Payload
from .retrying import RetryingProxy

logger = logging.getLogger(__name__)

USAGE = """\
Usage: binary-apns -keyFile KEYFILE -password KEYFILE_PASSWORD [-sandbox] \
[-notificationFile DATA_FILE] [-feedbackService] [-verbose|-debug]

DATA_FILE is a pipe delimited file containing the device token and json payload
Example:
00000000 11111111 22222222 33333333 44444444 55555555 66666666 77777777|{"aps":{"alert":"test"}}
11111111 11111111 22222222 33333333 44444444 55555555 66666666 77777777|{"aps":{"alert":"test2"}}

binary-apns will read from stdin if no DATA_FILE is specified"""

app = typer.Typer(
    add_completion=False,
    context_settings={"token_normalize_func": str.lower},
)


def _configure_logging(verbose: bool, debug: bool):
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG
    logging.basicConfig(level=level,
                        handlers=[RichHandler(console=Console(stderr=True))],
                        format="%(message)s", force=True)


def parse_record(line: str) -> Notification:
    token, sep, payload = line.partition("|")
    if not sep:
        raise MalformedJsonError("Expected TOKEN|JSON, got {!r}".format(line))
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise MalformedJsonError("Invalid JSON payload: {}".format(exc))
    return Notification(token, Payload.from_dict(data))


def read_notifications(lines: Iterable[str]) -> List[Notification]:
    notifications = []
    for lineno, line in enumerate(lines, 1):
        line = line.rstrip("\r\n")
        if not line.strip():
            continue
        try:
            notification = parse_record(line)
        except MalformedJsonError as exc:
            raise MalformedJsonError("Line {}: {}".format(lineno, exc))
        logger.debug("Token: %s Payload: %s", notification.token,
                     notification.payload_json())
        notifications.append(notification)
    return notifications


def print_rejection(rejection: GatewayRejection, notification: Notification):
    typer.echo("{}|{}|{}".format(rejection.message, notification.token,
                                 notification.payload_json()))


def print_failed_device(device: FailedDevice):
    typer.echo("{}|{}".format(device.failed_at.isoformat(), device.token))


async def send_notifications(key_file: str, password: str, sandbox: bool,
                             notifications: List[Notification], retries: int = 0):
    client = ApnsClient.from_credentials(key_file, password, sandbox=sandbox,
                                         on_rejected=print_rejection)
    sender = client
    if retries:
        sender = RetryingProxy(client, attempts=retries + 1)
    try:
        await sender.send_all(notifications)
    finally:
        client.close()
    logger.info("Sent %d notifications, last error: %s", len(notifications),
                client.get_last_error())


async def fetch_failed_devices(key_file: str, password: str,
                               sandbox: bool) -> List[FailedDevice]:
    client = FeedbackClient.from_credentials(key_file, password,
                                             sandbox=sandbox)
    return await client.fetch_all()


def _load_notifications(notification_file: Optional[str]) -> List[Notification]:
    source = notification_file or "-"
    logger.debug("Reading notifications from %s", source)
    try:
        with typer.open_file(source, encoding="utf-8") as f:
            return read_notifications(f)
    except OSError as exc:
        logger.error("Could not open notification file %s: %s", source, exc)
        raise typer.Exit(1)


@app.command()
def main(
    key_file: Annotated[Optional[str], typer.Option(
        "-keyFile", "--key-file", envvar="APNS_KEY_FILE",
        help="PKCS#12 file holding the push certificate and key")] = None,
    password: Annotated[Optional[str], typer.Option(
        "-password", "--password", envvar="APNS_KEY_PASSWORD",
        help="Password of the PKCS#12 file")] = None,
    sandbox: Annotated[bool, typer.Option(
        "-sandbox", "--sandbox", help="Use the sandbox hosts")] = False,
    notification_file: Annotated[Optional[str], typer.Option(
        "-notificationFile", "--notification-file",
        help="TOKEN|JSON records, one per line (default: stdin)")] = None,
    feedback_service: Annotated[bool, typer.Option(
        "-feedbackService", "--feedback-service",
        help="Print devices reported by the feedback service")] = False,
    retries: Annotated[int, typer.Option(
        "-retries", "--retries", min=0,
        help="Resend attempts after a connection failure")] = 0,
    verbose: Annotated[bool, typer.Option("-verbose", "--verbose")] = False,
    debug: Annotated[bool, typer.Option("-debug", "--debug")] = False,
):
    """
    Send push notifications through the APNs binary gateway
    """
    _configure_logging(verbose, debug)
    if key_file is None:
        typer.echo(USAGE)
        raise typer.Exit()
    if password is None:
        raise typer.BadParameter("is required", param_hint="-password")

    try:
        if feedback_service:
            logger.debug("Using feedback service")
            devices = asyncio.run(
                fetch_failed_devices(key_file, password, sandbox))
            for device in devices:
                print_failed_device(device)
            return
        notifications = _load_notifications(notification_file)
        asyncio.run(send_notifications(key_file, password, sandbox,
                                       notifications, retries))
    except APNsError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        raise typer.Exit(1)


def run():
    app()


if __name__ == "__main__":
    run()
