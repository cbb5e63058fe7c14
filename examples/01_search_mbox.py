"""
Index an mbox file in memory and run a query against it.

Usage:
    python examples/01_search_mbox.py ~/Mail/archive.mbox "project update"
    python examples/01_search_mbox.py archive.mbox 'from:alice after:2024-01-01' --limit 5
    python examples/01_search_mbox.py archive.mbox "invoice" --sort date
    python examples/01_search_mbox.py archive.mbox "invoice" --remote   # also query IMAP (MAIL_SEARCH_IMAP_* env)
"""
import argparse
import asyncio
import logging
import mailbox
from email import policy
from email.parser import BytesParser

from mail_search import Attachment, EmailMessage, SearchManager, SearchOptions

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")


def load_mbox(path: str) -> list[EmailMessage]:
    messages = []
    for key, raw in mailbox.mbox(path).items():
        msg = BytesParser(policy=policy.default).parsebytes(raw.as_bytes())
        plain = msg.get_body(preferencelist=("plain",))
        html = msg.get_body(preferencelist=("html",))
        messages.append(EmailMessage(
            message_id=msg.get("Message-ID") or f"mbox-{key}",
            subject=msg.get("Subject", ""),
            sender=msg.get("From", ""),
            to=msg.get("To", ""),
            cc=msg.get("Cc", ""),
            body_text=plain.get_content() if plain else "",
            body_html=html.get_content() if html else "",
            date=msg.get("Date"),
            attachments=[Attachment(filename=a.get_filename() or "") for a in msg.iter_attachments()],
        ))
    return messages


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Search an mbox file")
    parser.add_argument("mbox", help="Path to the mbox file")
    parser.add_argument("query", help="Search query, e.g. 'from:alice subject:\"weekly report\"'")
    parser.add_argument("--limit", type=int, default=10, help="Number of results (default: 10)")
    parser.add_argument("--sort", choices=["relevance", "date", "sender"], default="relevance")
    parser.add_argument("--remote", action="store_true", help="Also search the configured IMAP server")
    args = parser.parse_args()

    messages = load_mbox(args.mbox)
    manager = SearchManager(message_provider=lambda: messages)
    options = SearchOptions(use_remote=args.remote, limit=args.limit, sort_by=args.sort)
    result = asyncio.run(manager.perform_search(args.query, options))
    if result is None:
        parser.error("query is empty")

    by_id = {m.message_id: m for m in messages}
    print(f"\n{result.total_results} results for '{args.query}' ({result.search_time:.1f} ms)")
    if result.remote is not None:
        print(f"  {result.remote_count} of them found on the IMAP server")
    for warning in result.warnings:
        print(f"  warning: {warning}")
    print()
    for i, message_id in enumerate(result.results, 1):
        msg = by_id[message_id]
        print(f"{i:>2}. {str(msg.date or 'no date')[:16]}  {msg.sender}")
        print(f"    {msg.subject}")
