import sys
import logging
from pathlib import Path

# Ensure repo root is importable when executed as a script.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

# Always resolve bot-local files relative to this directory (do not depend on cwd).
BASE_DIR = Path(__file__).resolve().parent

from config_loader import load_config_with_secrets, resolve_bot_token
from config_loader import is_placeholder_secret, mask_secret

import discord
from discord.ext import commands

from modmail_config import ModmailConfig, build_modmail_config
from modmail_router import ModmailRouter

log = logging.getLogger("modmail")


# -----------------------------
# Load Configuration
# -----------------------------
def load_config() -> tuple[ModmailConfig, str]:
    raw, _, secrets_path = load_config_with_secrets(BASE_DIR)
    token = resolve_bot_token(raw, BASE_DIR)
    if is_placeholder_secret(token):
        raise RuntimeError(f"bot_token must be set in {secrets_path} or the TOKEN environment variable")
    return build_modmail_config(raw), token


def setup_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")
    # discord.py gateway chatter stays at WARNING unless debugging.
    if level > logging.DEBUG:
        logging.getLogger("discord").setLevel(logging.WARNING)


# -----------------------------
# Discord client
# -----------------------------
class ModmailBot(commands.Bot):
    def __init__(self, config: ModmailConfig):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.guilds = True
        intents.guild_messages = True
        intents.dm_messages = True
        super().__init__(command_prefix=commands.when_mentioned, intents=intents)
        self.config = config
        self.router = ModmailRouter(self, config)

    async def setup_hook(self) -> None:
        # Close buttons from before a restart keep dispatching to the router.
        self.add_view(self.router.controls_view())

    async def on_ready(self) -> None:
        log.info("=" * 60)
        log.info("  Modmail Bot")
        log.info("=" * 60)
        log.info(f"[Bot] Ready as {self.user} (ID: {self.user.id})")

        cfg = self.config
        guild = self.get_guild(cfg.guild_id)
        if not guild:
            log.warning(f"⚠️  Guild: Not found (ID: {cfg.guild_id})")
            return
        log.info(f"🏠 Guild: {guild.name} (ID: {cfg.guild_id})")

        role = guild.get_role(cfg.staff_role_id)
        if role:
            log.info(f"🛡️ Staff Role: {role.name} (ID: {cfg.staff_role_id})")
        else:
            log.warning(f"⚠️  Staff Role: Not found (ID: {cfg.staff_role_id})")

        for label, ch_id in (("Ticket Category", cfg.ticket_category_id), ("Transcripts Channel", cfg.transcripts_channel_id)):
            ch = guild.get_channel(ch_id)
            if ch:
                log.info(f"📝 {label}: {ch.name} (ID: {ch_id})")
            else:
                log.warning(f"⚠️  {label}: Not found (ID: {ch_id})")

    async def on_message(self, message: discord.Message) -> None:
        await self.router.handle_message(message)


def check_config() -> int:
    raw, config_path, secrets_path = load_config_with_secrets(BASE_DIR)
    token = resolve_bot_token(raw, BASE_DIR)
    errors = []
    if is_placeholder_secret(token):
        errors.append("bot_token missing/placeholder in config.secrets.json and TOKEN env")
    try:
        build_modmail_config(raw)
    except ValueError as e:
        errors.append(str(e))
    if errors:
        print("[ConfigCheck] FAILED")
        for e in errors:
            print(f"- {e}")
        return 2
    print("[ConfigCheck] OK")
    print(f"- config: {config_path}")
    print(f"- secrets: {secrets_path}")
    print(f"- bot_token: {mask_secret(token)}")
    return 0


# -----------------------------
# Run
# -----------------------------
if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(add_help=True)
    parser.add_argument("--check-config", action="store_true", help="Validate config + secrets and exit (no Discord connection).")
    args = parser.parse_args()

    if args.check_config:
        raise SystemExit(check_config())

    config, token = load_config()
    setup_logging(config.log_level)
    bot = ModmailBot(config)
    bot.run(token, log_handler=None)
