import logging
import smtplib
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from salon.core.config import settings
from salon.core.timeutils import from_naive_utc

logger = logging.getLogger(__name__)

_WEEKDAYS = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def format_local_datetime(start_utc: datetime, duration_minutes: int) -> tuple[str, str]:
    """("sábado, 14 de marzo de 2026", "10:00 – 11:00") in the business timezone."""
    start = from_naive_utc(start_utc)
    end = start + timedelta(minutes=duration_minutes)
    date_str = f"{_WEEKDAYS[start.weekday()]}, {start.day} de {_MONTHS[start.month - 1]} de {start.year}"
    return date_str, f"{start:%H:%M} – {end:%H:%M}"


def _layout(title: str, body_html: str) -> str:
    logo_html = ""
    if settings.email_logo_url:
        logo_html = f'<img src="{settings.email_logo_url}" alt="{settings.site_name}" width="120" style="display:block;margin-bottom:24px;" />'
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#fdf2f8;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#fdf2f8;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              {logo_html}
              <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">{title}</h1>
              {body_html}
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px 32px 32px;background:#fdf2f8;border-top:1px solid #fbcfe8;">
              <p style="margin:0 0 4px 0;font-size:13px;font-weight:600;color:#111827;">{settings.site_name}</p>
              <p style="margin:0;font-size:13px;color:#6b7280;">
                {settings.contact_email} &nbsp;·&nbsp; {settings.contact_phone}<br>
                {settings.contact_address}
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _details_box(service_name: str, date_str: str, time_str: str) -> str:
    return f"""
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
                <tr>
                  <td style="padding:20px 24px;">
                    <p style="margin:0 0 8px 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Servicio</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{service_name}</p>
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Fecha</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{date_str}</p>
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Hora</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{time_str}</p>
                  </td>
                </tr>
              </table>"""


def build_booking_received_html(
    client_name: str, service_name: str, start_utc: datetime, duration_minutes: int
) -> str:
    date_str, time_str = format_local_datetime(start_utc, duration_minutes)
    body = f"""
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hola {_html_escape(client_name) or 'clienta'}, recibimos tu reserva. Te confirmaremos pronto.</p>
              {_details_box(_html_escape(service_name), date_str, time_str)}
              <p style="margin:0;font-size:14px;color:#374151;">Si necesitas cambiar o cancelar tu cita, contáctanos.</p>"""
    return _layout("Reserva recibida", body)


def build_admin_new_booking_html(
    client_name: str,
    client_phone: str,
    service_name: str,
    start_utc: datetime,
    duration_minutes: int,
    notes: str | None,
) -> str:
    date_str, time_str = format_local_datetime(start_utc, duration_minutes)
    notes_html = ""
    if notes:
        notes_html = f'<p style="margin:0;font-size:14px;color:#6b7280;">Notas: {_html_escape(notes)}</p>'
    body = f"""
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">{_html_escape(client_name)} ({_html_escape(client_phone)}) reservó una cita.</p>
              {_details_box(_html_escape(service_name), date_str, time_str)}
              {notes_html}"""
    return _layout("Nueva cita", body)


def build_cancellation_html(
    client_name: str, service_name: str, start_utc: datetime, duration_minutes: int
) -> str:
    date_str, time_str = format_local_datetime(start_utc, duration_minutes)
    body = f"""
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hola {_html_escape(client_name) or 'clienta'}, tu cita fue cancelada.</p>
              {_details_box(_html_escape(service_name), date_str, time_str)}
              <p style="margin:0;font-size:14px;color:#374151;">Puedes reservar una nueva fecha cuando quieras.</p>"""
    return _layout("Cita cancelada", body)


def send_booking_received_email(
    to_email: str, client_name: str, service_name: str, start_utc: datetime, duration_minutes: int
) -> None:
    """Client copy of a new PENDING booking (call from background task)."""
    subject = f"{settings.site_name} – Reserva recibida"
    html = build_booking_received_html(client_name, service_name, start_utc, duration_minutes)
    _send_email_sync(to_email, subject, html)


def send_admin_new_booking_email(
    client_name: str,
    client_phone: str,
    service_name: str,
    start_utc: datetime,
    duration_minutes: int,
    notes: str | None = None,
) -> None:
    subject = f"{settings.site_name} – Nueva cita de {client_name}"
    html = build_admin_new_booking_html(
        client_name, client_phone, service_name, start_utc, duration_minutes, notes
    )
    _send_email_sync(settings.notification_email, subject, html)


def send_cancellation_email(
    to_email: str, client_name: str, service_name: str, start_utc: datetime, duration_minutes: int
) -> None:
    subject = f"{settings.site_name} – Cita cancelada"
    html = build_cancellation_html(client_name, service_name, start_utc, duration_minutes)
    _send_email_sync(to_email, subject, html)


def admin_panel_url() -> str:
    return f"{settings.frontend_url.rstrip('/')}/rachell-admin"


def send_drive_reauth_email(error_message: str) -> None:
    """Tell the admin the Drive refresh token was rejected and uploads now go to local disk."""
    body = f"""
              <p style="margin:0 0 16px 0;font-size:15px;color:#6b7280;">El token de Google Drive ya no es válido. Las imágenes nuevas se guardan en el servidor hasta que se vuelva a autorizar la cuenta.</p>
              <p style="margin:0 0 16px 0;font-size:15px;color:#374151;">Autoriza de nuevo desde el <a href="{admin_panel_url()}" style="color:#db2777;">panel de administración</a> (Google Drive → Reautorizar).</p>
              <p style="margin:0;font-size:13px;color:#9ca3af;">Detalle: {_html_escape(error_message)}</p>"""
    _send_email_sync(
        settings.notification_email,
        f"{settings.site_name} – Reautorizar Google Drive",
        _layout("Google Drive requiere reautorización", body),
    )


def send_token_renewed_email(provider: str) -> None:
    """Confirm to the admin that an integration was authorized again."""
    body = f"""
              <p style="margin:0;font-size:15px;color:#6b7280;">La autorización de <strong>{_html_escape(provider)}</strong> se renovó correctamente. Las imágenes nuevas vuelven a guardarse en Google Drive.</p>"""
    _send_email_sync(
        settings.notification_email,
        f"{settings.site_name} – Autorización renovada",
        _layout("Autorización renovada", body),
    )
