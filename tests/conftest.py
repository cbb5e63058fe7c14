from datetime import UTC, datetime

import pytest

from mail_search import Attachment, EmailMessage, Participant, SearchIndex


@pytest.fixture
def sample_messages():
    return [
        EmailMessage(
            message_id="m1",
            subject="Project Update",
            sender="alice@x.com",
            to="team@x.com",
            body_text="The quarterly budget numbers are ready.",
            date="2024-01-10",
        ),
        EmailMessage(
            message_id="m2",
            subject="Re: Project Update",
            sender="bob@x.com",
            to="team@x.com",
            body_text="Thanks, looks good.",
            date="2024-02-01",
        ),
        EmailMessage(
            message_id="m3",
            subject="Invoice March",
            sender=Participant(name="Carol Jones", address="carol@y.org"),
            to=[{"name": "Bob", "address": "bob@x.com"}],
            cc="dave@x.com",
            body_html="<p>Please find the <b>invoice</b> attached</p>",
            date=datetime(2024, 3, 5, 23, 30, tzinfo=UTC),
            attachments=[Attachment(filename="Invoice-March.pdf", mime_type="application/pdf", size=5000)],
        ),
    ]


@pytest.fixture
def index(sample_messages):
    idx = SearchIndex()
    idx.build_index(sample_messages)
    return idx


class RecordingDisplay:
    def __init__(self):
        self.results = []
        self.warnings = []
        self.cleared = 0

    def display_results(self, result):
        self.results.append(result)

    def clear_search(self):
        self.cleared += 1

    def show_warning(self, message):
        self.warnings.append(message)


@pytest.fixture
def display():
    return RecordingDisplay()
