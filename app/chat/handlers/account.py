from __future__ import annotations

import logging

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent
from app.chat.handlers.common import STORAGE_UNAVAILABLE_MESSAGE, HandlerContext, command_has, needs_wallet, reply
from app.chat.handlers.registry import register
from db.repos.contacts_repo import delete_contact, find_contact_by_name, list_contacts, save_contact
from db.repos.settings_repo import get_or_create_settings, update_settings
from security.address import is_zero_address, short_address, validate_address

logger = logging.getLogger(__name__)

NO_PENDING_TOKENS_MESSAGE = "No pending token approvals found. All tokens have been processed."

# (settings column, label, words that select it)
_NOTIFICATION_TOGGLES = (
    ("transaction_notifications", "Transaction notifications", ("transaction", "transactions", "payment")),
    ("balance_notifications", "Balance change alerts", ("balance",)),
    ("security_alerts", "Security alerts", ("security", "phishing", "risk")),
)


# ---------------------------
# contacts
# ---------------------------


@register(IntentType.CONTACT)
def handle_contact(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    text = intent.raw_command
    name = intent.entities.get("name")
    address = intent.entities.get("address")

    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="contacts_unavailable")

        if command_has(text, "delete", "remove"):
            if not name:
                return reply('Which contact should I remove? e.g. "Delete contact Jake"', action="contact_delete_help")
            if delete_contact(db, user_id=ctx.owner_id, name=name):
                return reply(f"🗑️ Removed {name} from your contacts.", action="contact_deleted")
            return reply(f"I couldn't find \"{name}\" in your contacts.", action="contact_not_found")

        if address:
            if not name:
                return reply(
                    f'What name should I save {short_address(address)} under? e.g. "Save {short_address(address)} as Jake"',
                    action="contact_missing_name",
                )
            if is_zero_address(address):
                return reply("🚫 I can't save the zero address as a contact. Funds sent there are burned forever.", action="contact_zero_address")
            validation = validate_address(address)
            if not validation.is_valid:
                return reply(
                    f"That address doesn't look right ({validation.error}). It should start with \"0x\" and be 42 characters long.",
                    action="contact_invalid_address",
                )
            contact = save_contact(
                db,
                user_id=ctx.owner_id,
                name=name,
                address=validation.normalized_address,
                notes=intent.entities.get("notes"),
            )
            logger.info("Contact saved session_id=%s", ctx.session_id)
            return reply(
                f"✅ Saved {contact.name} ({short_address(contact.address)}) to your contacts. "
                f'Now you can say "Send $20 to {contact.name}".',
                action="contact_saved",
                data={"name": contact.name, "address": contact.address},
            )

        if name:
            contact = find_contact_by_name(db, user_id=ctx.owner_id, name=name)
            if contact is None:
                return reply(
                    f'I couldn\'t find "{name}" in your contacts. Save them with "Save 0x... as {name}".',
                    action="contact_not_found",
                )
            return reply(
                f"📇 {contact.name}: {contact.address}" + (f"\nNotes: {contact.notes}" if contact.notes else ""),
                action="contact_found",
                data={"name": contact.name, "address": contact.address},
            )

        contacts = list_contacts(db, user_id=ctx.owner_id)
        lines = [f"• {c.name}: {short_address(c.address)}" for c in contacts]

    if not lines:
        return reply(
            'You don\'t have any contacts yet. Save one with "Save 0x... as Jake".',
            action="contact_list",
        )
    return reply("📇 Your contacts:\n\n" + "\n".join(lines), action="contact_list")


# ---------------------------
# notifications
# ---------------------------


def _on_off(value: bool) -> str:
    return "✅ On" if value else "❌ Off"


@register(IntentType.NOTIFICATION)
def handle_notification(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    text = intent.raw_command.lower()
    turn_off = command_has(text, " off", "disable", "stop", "mute")
    turn_on = command_has(text, " on", "enable", "start", "unmute")

    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="notifications_unavailable")

        if turn_on or turn_off:
            value = not turn_off
            columns = [col for col, _, words in _NOTIFICATION_TOGGLES if any(w in text for w in words)]
            if not columns:
                columns = ["notifications_enabled"] + [col for col, _, _ in _NOTIFICATION_TOGGLES]
            row = update_settings(db, user_id=ctx.owner_id, changes={col: value for col in columns})
            labels = [label for col, label, _ in _NOTIFICATION_TOGGLES if col in columns] or ["All notifications"]
            state = "on" if value else "off"
            return reply(
                f"🔔 {', '.join(labels)} turned {state}.",
                action="notification_updated",
                data={col: getattr(row, col) for col in columns},
            )

        row = get_or_create_settings(db, user_id=ctx.owner_id)
        lines = [f"{label}: {_on_off(getattr(row, col))}" for col, label, _ in _NOTIFICATION_TOGGLES]
        enabled = row.notifications_enabled

    return reply(
        "🔔 Notification Settings\n\n"
        + f"Notifications: {_on_off(enabled)}\n"
        + "\n".join(lines)
        + '\n\nSay "turn off balance alerts" or "enable transaction notifications" to change them.',
        action="notification_settings",
    )


# ---------------------------
# incoming token approvals
# ---------------------------


@register(IntentType.APPROVE_TOKEN, IntentType.REJECT_TOKEN)
def handle_token_decision(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to manage incoming tokens.")
    if blocked:
        return blocked
    return reply(
        NO_PENDING_TOKENS_MESSAGE,
        action=intent.intent.value,
        data={"token": intent.entities.get("token") or intent.entities.get("address")},
    )
