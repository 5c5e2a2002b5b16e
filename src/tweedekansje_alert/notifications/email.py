"""Email rendering and SMTP delivery of store alerts."""
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Optional

from jinja2 import Environment, StrictUndefined

from ..config import EmailConfig
from .base import Notifier, StoreAlert

logger = logging.getLogger(__name__)

TWEEDEKANSJE_URL = "https://www.ikea.com/nl/nl/stores/tweedekansje/"

HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <style>
      body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
      .container { max-width: 600px; margin: 0 auto; padding: 20px; }
      .header { background-color: #0051BA; color: white; padding: 20px; text-align: center; }
      .content { background-color: #f9f9f9; padding: 20px; }
      .product { background-color: white; padding: 20px; margin: 20px 0; border-radius: 8px; }
      .product-image { max-width: 100%; height: auto; margin-bottom: 15px; }
      .price { font-size: 24px; font-weight: bold; color: #0051BA; }
      .button { background-color: #FFDA1A; color: #111; padding: 12px 24px; text-decoration: none;
                border-radius: 4px; display: inline-block; font-weight: bold; }
      .footer { text-align: center; padding: 20px; color: #666; font-size: 12px; }
    </style>
  </head>
  <body>
    <div class="container">
      <div class="header"><h1>IKEA Tweedekansje Alert!</h1></div>
      <div class="content">
        <p>Good news! {{ alert.items|length }} product{{ "s are" if alert.items|length != 1 else " is" }}
           you are watching now available in {{ alert.store_name }}:</p>
        {% for item in alert.items %}
        <div class="product">
          {% if item.image_url %}<img src="{{ item.image_url }}" alt="{{ item.name }}" class="product-image">{% endif %}
          <h2>{{ item.name }}</h2>
          <p class="price">{{ item.price|euro }}</p>
          {% if item.original_price and item.original_price > 0 %}
          <p>Original price: <strong>{{ item.original_price|euro }}</strong></p>
          {% endif %}
        </div>
        {% endfor %}
        <div class="product">
          <p><strong>Store:</strong> {{ alert.store_name }}</p>
          {% if alert.store_address %}<p><strong>Address:</strong> {{ alert.store_address }}</p>{% endif %}
          <p><a href="{{ tweedekansje_url }}" class="button">View on IKEA Tweedekansje</a></p>
        </div>
        {% if alert.fuel or alert.total_discount is not none %}
        <div class="product" style="background-color:#fff7d6;">
          <h3>Price Breakdown</h3>
          <ul style="padding-left:20px;">
            <li>Tweedekansje total: <strong>{{ alert.total_price|euro }}</strong></li>
            {% if alert.total_discount is not none %}
            <li>Discount on original prices: <strong>{{ alert.total_discount|euro }}</strong></li>
            {% endif %}
            {% if alert.fuel %}
            <li>Estimated fuel cost: <strong>{{ alert.fuel.fuel_cost|euro }}</strong>
              ({{ "%.1f"|format(alert.fuel.distance_km) }} km round trip,
               {{ "%.1f"|format(alert.fuel.fuel_consumption) }} L/100km,
               fuel price {{ "%.2f"|format(alert.fuel.fuel_price_per_liter) }} &euro;/L)</li>
            {% endif %}
            {% if alert.fuel and alert.savings_after_fuel is not none %}
            <li>Estimated savings after fuel: <strong>{{ alert.savings_after_fuel|euro }}</strong></li>
            {% endif %}
          </ul>
        </div>
        {% endif %}
        <p>This is a limited-time offer. Visit your local IKEA store to purchase these items.</p>
      </div>
      <div class="footer">
        <p>You received this email because you set up a watch for these products.</p>
        {% if alert.manage_url %}<p><a href="{{ alert.manage_url }}">Manage your watches</a></p>{% endif %}
      </div>
    </div>
  </body>
</html>
"""

TEXT_TEMPLATE = """\
IKEA Tweedekansje alert for {{ alert.store_name }}
{% if alert.store_address %}{{ alert.store_address }}
{% endif %}
{% for item in alert.items %}
- {{ item.name }}: {{ item.price|euro }}{% if item.original_price and item.original_price > 0 %} (was {{ item.original_price|euro }}){% endif %}
{% endfor %}
{% if alert.fuel %}
Trip: {{ "%.1f"|format(alert.fuel.distance_km) }} km round trip, estimated fuel cost {{ alert.fuel.fuel_cost|euro }}
{% if alert.savings_after_fuel is not none %}Estimated savings after fuel: {{ alert.savings_after_fuel|euro }}
{% endif %}{% endif %}
View offers: {{ tweedekansje_url }}
{% if alert.manage_url %}Manage your watches: {{ alert.manage_url }}
{% endif %}"""


def format_euro(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return ""
    return f"€{value:.2f}"


def _environment(autoescape: bool) -> Environment:
    env = Environment(autoescape=autoescape, undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True)
    env.filters["euro"] = format_euro
    return env


_HTML = _environment(autoescape=True).from_string(HTML_TEMPLATE)
_TEXT = _environment(autoescape=False).from_string(TEXT_TEMPLATE)


def render_html(alert: StoreAlert) -> str:
    return _HTML.render(alert=alert, tweedekansje_url=TWEEDEKANSJE_URL)


def render_text(alert: StoreAlert) -> str:
    return _TEXT.render(alert=alert, tweedekansje_url=TWEEDEKANSJE_URL)


def build_message(alert: StoreAlert, sender: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = alert.subject
    message["From"] = sender
    message["To"] = alert.recipient
    message.attach(MIMEText(render_text(alert), "plain", "utf-8"))
    message.attach(MIMEText(render_html(alert), "html", "utf-8"))
    return message


class SmtpEmailNotifier(Notifier):
    """Sends alerts over SMTP with STARTTLS."""

    def __init__(self, config: EmailConfig, timeout: int = 30) -> None:
        self._config = config
        self._timeout = timeout

    def _effective_sender(self) -> str:
        # Gmail rewrites or rejects a From header that differs from the login.
        if "gmail" in self._config.smtp_server.lower() and self._config.username:
            return self._config.username
        return self._config.sender

    def send(self, alert: StoreAlert) -> bool:
        username: Optional[str] = self._config.username
        password: Optional[str] = self._config.password
        if not (username and password):
            logger.error("Email credentials missing; cannot send alert to %s", alert.recipient)
            return False

        sender = self._effective_sender()
        message = build_message(alert, sender)
        try:
            with smtplib.SMTP(self._config.smtp_server, self._config.smtp_port, timeout=self._timeout) as server:
                server.starttls()
                server.login(username, password)
                server.sendmail(sender, [alert.recipient], message.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send alert to %s: %s", alert.recipient, exc)
            return False

        logger.info("Alert email sent to %s for store %s", alert.recipient, alert.store_id)
        return True
