from __future__ import annotations

from dataclasses import dataclass

DEFAULT_TICKET_OPENED_MESSAGE = (
    "Thank you for contacting the support team, the team will be with you shortly. "
    "Please state your reason for opening the ticket."
)
DEFAULT_TICKET_CLOSED_MESSAGE = "Thank you for contacting the support team, your ticket has been closed by {closed_by}."

REQUIRED_ID_KEYS = ("guild_id", "staff_role_id", "ticket_category_id", "transcripts_channel_id")


@dataclass(frozen=True)
class ModmailConfig:
    guild_id: int
    staff_role_id: int
    ticket_category_id: int
    transcripts_channel_id: int
    transcript_history_limit: int = 100
    close_command: str = "!close"
    ticket_opened_message: str = DEFAULT_TICKET_OPENED_MESSAGE
    ticket_closed_message: str = DEFAULT_TICKET_CLOSED_MESSAGE
    log_level: str = "INFO"

    def closed_message_for(self, closed_by: str) -> str:
        return self.ticket_closed_message.replace("{closed_by}", str(closed_by))


def _as_int(v: object) -> int:
    try:
        return int(str(v).strip())
    except Exception:
        return 0


def build_modmail_config(raw: dict) -> ModmailConfig:
    """Validate the merged config.json/config.secrets.json dict.

    Raises ValueError naming every missing/invalid required ID.
    """
    root = raw if isinstance(raw, dict) else {}
    ids = {k: _as_int(root.get(k)) for k in REQUIRED_ID_KEYS}
    missing = [k for k, v in ids.items() if v <= 0]
    if missing:
        raise ValueError(f"Missing/invalid config value(s): {', '.join(missing)}")

    msgs = root.get("messages") if isinstance(root.get("messages"), dict) else {}
    log_cfg = root.get("logging") if isinstance(root.get("logging"), dict) else {}

    limit = _as_int(root.get("transcript_history_limit")) or 100
    close_cmd = str(root.get("close_command") or "!close").strip().lower() or "!close"

    return ModmailConfig(
        guild_id=ids["guild_id"],
        staff_role_id=ids["staff_role_id"],
        ticket_category_id=ids["ticket_category_id"],
        transcripts_channel_id=ids["transcripts_channel_id"],
        transcript_history_limit=max(1, min(limit, 100)),
        close_command=close_cmd,
        ticket_opened_message=str(msgs.get("ticket_opened") or DEFAULT_TICKET_OPENED_MESSAGE),
        ticket_closed_message=str(msgs.get("ticket_closed") or DEFAULT_TICKET_CLOSED_MESSAGE),
        log_level=str(log_cfg.get("level") or "INFO").strip().upper() or "INFO",
    )
