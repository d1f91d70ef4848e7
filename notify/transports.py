"""
notify/transports.py -- Outbound mail transports.

Every transport exposes the same two calls:
  send(message)  -- deliver one message; raises DeliveryError on any failure.
  verify()       -- connectivity check used once at startup; raises DeliveryError.

Transports are synchronous and blocking. NotificationDispatcher runs them in
a worker thread so no request ever waits on mail I/O.

  SmtpTransport     SMTP (implicit TLS on 465 by default, STARTTLS otherwise)
  GatewayTransport  JSON POST to an HTTP mail gateway, HMAC-SHA256 signed
  ConsoleTransport  logs the message; local development only

Credentials always arrive through the constructor (from Settings). Nothing
here reads the environment.

Layer rule: notify/ imports only stdlib + third-party + core/.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

import requests

logger = logging.getLogger("passgate.notify")


class DeliveryError(Exception):
    """Raised when a transport fails to hand a message over."""


@dataclass(frozen=True)
class OutboundMessage:
    to: str
    subject: str
    body: str


class SmtpTransport:
    """Deliver mail through an SMTP relay.

    use_ssl=True opens an implicit-TLS connection (port 465). With
    use_ssl=False the connection is upgraded with STARTTLS when the server
    offers it.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_ssl: bool = True,
        timeout: float = 10.0,
    ) -> None:
        if not host:
            raise ValueError("host is required")
        if not sender:
            raise ValueError("sender is required")
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            client = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            client.ehlo()
            if client.has_extn("starttls"):
                client.starttls(context=context)
                client.ehlo()
        if self.username:
            client.login(self.username, self.password)
        return client

    def send(self, message: OutboundMessage) -> None:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)
        try:
            with self._connect() as client:
                client.send_message(email)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {message.to} failed: {exc}") from exc

    def verify(self) -> None:
        try:
            with self._connect() as client:
                client.noop()
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP server {self.host}:{self.port} unreachable: {exc}") from exc


class GatewayTransport:
    """Send mail via an HTTP gateway with HMAC signature verification.

    The JSON body is signed with HMAC-SHA256 over its exact serialized bytes
    and sent with X-API-Key and X-Signature headers. The gateway answers
    {"success": true} on acceptance.
    """

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, sender: str = "", timeout: float = 10.0):
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.sender = sender
        self.timeout = timeout

    def _sign(self, payload_json: str) -> str:
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def send(self, message: OutboundMessage) -> None:
        payload = {"email": message.to, "subject": message.subject, "body": message.body}
        if self.sender:
            payload["sender"] = self.sender
        payload_json = json.dumps(payload, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self._sign(payload_json),
        }

        try:
            response = requests.post(self.gateway_url, data=payload_json, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DeliveryError(f"Gateway connection failed: {exc}") from exc

        try:
            response_data = response.json()
        except ValueError as exc:
            raise DeliveryError(f"Gateway returned invalid JSON (HTTP {response.status_code})") from exc
        if not isinstance(response_data, dict):
            raise DeliveryError(f"Gateway returned unexpected JSON (HTTP {response.status_code})")

        if response.status_code != 200 or not response_data.get("success"):
            raise DeliveryError(f"Gateway error: {response_data.get('message', 'Unknown error')}")

    def verify(self) -> None:
        """Reachability check. Any HTTP answer below 500 counts as up."""
        try:
            response = requests.head(self.gateway_url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DeliveryError(f"Gateway unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise DeliveryError(f"Gateway unhealthy: HTTP {response.status_code}")


class ConsoleTransport:
    """Log messages instead of sending them. For local development."""

    def send(self, message: OutboundMessage) -> None:
        logger.info("[console mail] to=%s subject=%r\n%s", message.to, message.subject, message.body)

    def verify(self) -> None:
        return None


def build_transport(settings):
    """Construct the transport selected by MAIL_TRANSPORT."""
    if settings.mail_transport == "smtp":
        return SmtpTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.effective_mail_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_ssl=settings.smtp_use_ssl,
            timeout=settings.mail_timeout_seconds,
        )
    if settings.mail_transport == "gateway":
        return GatewayTransport(
            gateway_url=settings.mail_gateway_url,
            api_key=settings.mail_gateway_api_key,
            hmac_secret=settings.mail_gateway_hmac_secret,
            sender=settings.mail_sender,
            timeout=settings.mail_timeout_seconds,
        )
    return ConsoleTransport()
