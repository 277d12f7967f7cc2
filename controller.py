"""
Conversation controller: turns one inbound event into one reply.

A sender is either idle or awaiting confirmation of a meal extracted from
a photo. Photos always go through extraction. Text is matched in order:
confirm, correction (only while a meal is pending), totals, save, help,
and finally a hint.
"""

import logging
from typing import Tuple

import messages
from errors import ExtractionError, LedgerError
from meals import aggregate_meals, build_ledger_row, parse_corrections
from sessions import SessionStore

logger = logging.getLogger(__name__)

CONFIRM_COMMANDS = {"ok", "yes", "confirm"}
TOTALS_COMMANDS = {"today", "totals", "status"}
SAVE_COMMANDS = {"log today", "save", "done"}
HELP_COMMANDS = {"help"}


class ConversationController:
    def __init__(self, store: SessionStore, extractor, ledger, channel):
        self.store = store
        self.extractor = extractor
        self.ledger = ledger
        self.channel = channel

    def handle_photo(self, sender: str, message_id: str) -> Tuple[str, bool]:
        """
        Extracts a meal from the sender's photo and holds it for confirmation.

        A photo arriving while another meal is pending replaces that meal.
        The download and analysis run without the sender's lock, so texts
        from the same sender are not held up by a slow extraction.

        :return: (reply text, whether a meal is now awaiting confirmation)
        """
        try:
            image_data, content_type = self.channel.fetch_media(message_id)
            entry = self.extractor.extract(image_data, content_type)
        except ExtractionError as e:
            logger.error(f"Image analysis error for {sender}: {e}")
            return messages.format_extraction_error(e), False

        with self.store.lock(sender):
            session = self.store.get_or_create(sender)
            replaced = session.pending is not None
            session.await_confirmation(entry)
            return messages.format_pending(entry, replaced=replaced), True

    def handle_text(self, sender: str, text: str) -> str:
        command = text.strip().lower()

        with self.store.lock(sender):
            session = self.store.get_or_create(sender)

            if command in CONFIRM_COMMANDS and session.pending is not None:
                entry = session.confirm()
                return messages.format_confirmed(entry, aggregate_meals(session.meals))

            if session.pending is not None:
                edits = parse_corrections(command)
                if edits:
                    session.await_confirmation(session.pending.corrected(edits))
                    return messages.format_corrected(session.pending)

            if command in TOTALS_COMMANDS:
                if not session.meals:
                    return messages.NO_MEALS
                return messages.format_day(aggregate_meals(session.meals), session.meals)

            if command in SAVE_COMMANDS:
                if not session.meals:
                    return messages.NOTHING_TO_SAVE
                try:
                    row = self.ledger.upsert(sender, build_ledger_row(session.day, session.meals))
                except LedgerError as e:
                    logger.error(f"Sheet error for {sender}: {e}")
                    return messages.SAVE_FAILED
                return messages.format_saved(row)

            if command in HELP_COMMANDS:
                return messages.HELP

            return messages.HINT
