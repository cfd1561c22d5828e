"""
Unit tests for the content services: message ids, misuse detection, email
parsing, history export, resume parsing, notifications and payments.
"""

import csv
import io
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from docx import Document
from sqlalchemy import select

from app.core.database import utcnow
from app.core.exceptions import InputValidationError, PaymentError
from app.core.security import create_signature
from app.models.activity_history import ActivityHistory
from app.models.cover_letter import CoverLetter
from app.models.email_message import EmailMessage
from app.models.enums import ActivityType, ApplicationStatus, EmailMessageType, Length, LinkedInMessageType
from app.models.linkedin_message import LinkedInMessage
from app.models.notification import Notification
from app.models.user import UserType
from app.services.generation_service import parse_email_content
from app.services.history_service import CSV_HEADER, backfill_activity_history, export_history_csv, get_history
from app.services.message_id import generate_message_id, is_valid_message_id
from app.services.misuse_detection import (
    DEFAULT_MISUSE_MESSAGE,
    detect_misuse,
    get_misuse_message,
    set_misuse_message,
)
from app.services.notification_service import NotificationService
from app.services.payment_service import (
    build_charge_payload,
    create_charge,
    handle_webhook_event,
    verify_webhook_signature,
)
from app.services.resume_parser import (
    INVALID_TYPE_MESSAGE,
    MAX_RESUME_SIZE,
    NO_TEXT_MESSAGE,
    TOO_LARGE_MESSAGE,
    detect_file_type,
    extract_text,
)


def _docx_bytes(*paragraphs: str) -> bytes:
    document = Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _linkedin(user, company: str, **overrides) -> LinkedInMessage:
    values = dict(
        user_id=user.id,
        message_type=LinkedInMessageType.NEW,
        company_name=company,
        content=f"Hi, I'm interested in {company}",
        status=ApplicationStatus.SENT,
    )
    values.update(overrides)
    return LinkedInMessage(**values)


def _email(user, company: str, **overrides) -> EmailMessage:
    values = dict(
        user_id=user.id,
        message_type=EmailMessageType.NEW,
        recipient_email=f"hr@{company.lower()}.com",
        company_name=company,
        subject=f"Application at {company}",
        body="Dear team,\n\nI am applying.",
        status=ApplicationStatus.SENT,
    )
    values.update(overrides)
    return EmailMessage(**values)


class TestMessageIds:

    def test_linkedin_and_email_prefixes(self):
        linkedin_id = generate_message_id("linkedin")
        email_id = generate_message_id("email")

        assert linkedin_id.startswith("LNK-" + utcnow().strftime("%Y%m%d"))
        assert email_id.startswith("EML-")
        assert is_valid_message_id(linkedin_id)
        assert is_valid_message_id(email_id)

    @pytest.mark.parametrize("value", ["", "LNK-2024-ABCD", "ABC-20240101-ABCD", "EML-20240101-abcd"])
    def test_invalid_message_ids(self, value):
        assert not is_valid_message_id(value)


class TestMisuseDetection:

    def test_detects_misuse_json(self):
        assert detect_misuse('{"misuseDetected": true, "message": "MISUSE_DETECTED"}')
        assert detect_misuse('  {"misuseDetected":true,"message":"MISUSE_DETECTED"}\n')

    def test_long_content_is_not_flagged(self):
        content = "Dear Hiring Manager, " + "I bring strong experience. " * 10 + '{"misuseDetected": true} MISUSE_DETECTED'
        assert not detect_misuse(content)

    def test_marker_without_json_is_not_flagged(self):
        assert not detect_misuse("MISUSE_DETECTED")
        assert not detect_misuse("")

    async def test_misuse_message_defaults_and_override(self, db_session):
        assert await get_misuse_message(db_session) == DEFAULT_MISUSE_MESSAGE

        await set_misuse_message(db_session, "Please stick to job applications.")
        await set_misuse_message(db_session, "Job applications only.")

        assert await get_misuse_message(db_session) == "Job applications only."


class TestEmailParsing:

    def test_subject_and_body(self):
        subject, body = parse_email_content(
            "Subject: Backend Engineer application\n\nDear Sam,\n\nI am applying.",
            "Backend Engineer",
            "Acme",
        )

        assert subject == "Backend Engineer application"
        assert body == "Dear Sam,\n\nI am applying."

    def test_body_label_is_skipped(self):
        subject, body = parse_email_content("Subject: Hello\nBody:\nDear Sam,", None, "Acme")

        assert subject == "Hello"
        assert body == "Dear Sam,"

    def test_missing_subject_uses_position(self):
        subject, body = parse_email_content("Dear Sam,\n\nI am applying.", "Data Analyst", "Acme")

        assert subject == "Application for Data Analyst at Acme"
        assert body == "Dear Sam,\n\nI am applying."

    def test_missing_subject_without_position(self):
        subject, _ = parse_email_content("Dear Sam,", None, "Acme")
        assert subject == "Inquiry about opportunities at Acme"


class TestHistory:

    async def test_history_is_merged_newest_first(self, db_session, test_user):
        now = utcnow()
        parent = _linkedin(test_user, "Acme", created_at=now - timedelta(hours=3))
        db_session.add(parent)
        await db_session.flush()
        db_session.add_all([
            CoverLetter(
                user_id=test_user.id,
                company_name="Globex",
                job_description="Role",
                content="Letter",
                created_at=now - timedelta(hours=2),
            ),
            _linkedin(
                test_user,
                "Acme",
                message_type=LinkedInMessageType.FOLLOW_UP,
                parent_message_id=parent.id,
                created_at=now - timedelta(hours=1),
            ),
            _email(test_user, "Initech", created_at=now),
        ])
        await db_session.commit()

        history = await get_history(db_session, test_user)

        assert [item["type"] for item in history] == ["Email", "LinkedIn", "Cover Letter", "LinkedIn"]
        assert history[2]["position"] == "N/A"
        assert history[-1]["hasFollowUp"] is True
        assert history[1]["hasFollowUp"] is False

    async def test_history_filters(self, db_session, test_user):
        db_session.add_all([
            _linkedin(test_user, "Acme", status=ApplicationStatus.DONE),
            _email(test_user, "Acme"),
            _email(test_user, "Globex", areas_of_interest="Data platforms"),
        ])
        await db_session.commit()

        emails = await get_history(db_session, test_user, type_filter="Email")
        assert {item["company"] for item in emails} == {"Acme", "Globex"}

        done = await get_history(db_session, test_user, status="DONE")
        assert [item["type"] for item in done] == ["LinkedIn"]

        found = await get_history(db_session, test_user, search="platforms")
        assert [item["company"] for item in found] == ["Globex"]

    async def test_export_csv(self, db_session, test_user):
        db_session.add_all([
            CoverLetter(
                user_id=test_user.id,
                company_name="Acme",
                position_title="Engineer",
                job_description="Role",
                content='Letter with "quotes", commas',
                length=Length.LONG,
                llm_model="gpt-4o",
                created_at=utcnow() - timedelta(minutes=5),
            ),
            _email(test_user, "Globex"),
        ])
        await db_session.commit()

        rows = list(csv.reader(io.StringIO(await export_history_csv(db_session, test_user))))

        assert rows[0] == CSV_HEADER
        assert rows[1][0] == "Email"
        assert rows[1][2] == "General Inquiry"
        assert rows[2][:4] == ["Cover Letter", "Acme", "Engineer", ""]
        assert rows[2][5] == 'Letter with "quotes", commas'
        assert rows[2][8:] == ["gpt-4o", "LONG"]

    async def test_export_csv_empty(self, db_session, test_user):
        assert await export_history_csv(db_session, test_user) == ",".join(CSV_HEADER)

    async def test_backfill_activity_history(self, db_session, test_user):
        db_session.add_all([
            CoverLetter(user_id=test_user.id, job_description="Role", content="Letter"),
            _email(test_user, "Globex"),
        ])
        await db_session.commit()

        assert await backfill_activity_history(db_session) == 2
        assert await backfill_activity_history(db_session) == 0

        rows = (await db_session.execute(select(ActivityHistory))).scalars().all()
        assert {(row.activity_type, row.company_name) for row in rows} == {
            (ActivityType.COVER_LETTER, "Unknown Company"),
            (ActivityType.EMAIL_MESSAGE, "Globex"),
        }


class TestResumeParser:

    @pytest.mark.parametrize(
        "filename,content_type,expected",
        [
            ("resume.pdf", None, "pdf"),
            ("resume.bin", "application/pdf", "pdf"),
            ("Resume.DOCX", None, "docx"),
            ("resume.txt", "text/plain", None),
        ],
    )
    def test_detect_file_type(self, filename, content_type, expected):
        assert detect_file_type(filename, content_type) == expected

    def test_extract_docx(self):
        data = _docx_bytes("Jane Doe", "Python developer")
        assert extract_text("resume.docx", None, data) == "Jane Doe\nPython developer"

    def test_extract_pdf(self):
        pages = [MagicMock(), MagicMock()]
        pages[0].extract_text.return_value = "Jane Doe"
        pages[1].extract_text.return_value = "Experience"

        with patch("app.services.resume_parser.PyPDF2.PdfReader") as reader_cls:
            reader_cls.return_value.pages = pages
            text = extract_text("resume.pdf", "application/pdf", b"%PDF-1.4")

        assert text == "Jane Doe\nExperience"

    def test_rejects_unsupported_type(self):
        with pytest.raises(InputValidationError, match=INVALID_TYPE_MESSAGE):
            extract_text("resume.txt", "text/plain", b"plain text")

    def test_rejects_large_files(self):
        with pytest.raises(InputValidationError) as exc_info:
            extract_text("resume.pdf", None, b"0" * (MAX_RESUME_SIZE + 1))
        assert str(exc_info.value) == TOO_LARGE_MESSAGE

    def test_unreadable_file(self):
        with pytest.raises(InputValidationError) as exc_info:
            extract_text("resume.docx", None, b"not a zip archive")
        assert str(exc_info.value) == NO_TEXT_MESSAGE

    def test_empty_document(self):
        with pytest.raises(InputValidationError):
            extract_text("resume.docx", None, _docx_bytes())


class TestNotificationService:

    async def test_reminders_for_stale_sent_messages(self, db_session, test_user):
        stale = utcnow() - timedelta(days=8)
        db_session.add_all([
            _linkedin(test_user, "Acme", position_title="Engineer", updated_at=stale),
            _email(test_user, "Globex", updated_at=stale),
            _email(test_user, "Initech", status=ApplicationStatus.DONE, updated_at=stale),
            _email(test_user, "Hooli"),
        ])
        await db_session.commit()
        service = NotificationService(db_session, test_user)

        assert await service.create_followup_reminders() == 2
        assert await service.create_followup_reminders() == 0

        notifications = await service.list_notifications()
        titles = {item["title"] for item in notifications}
        assert titles == {"Time to follow up with Acme", "Time to follow up with Globex"}
        linkedin_note = next(item for item in notifications if item["linkedInMessage"])
        assert linkedin_note["linkedInMessage"]["positionTitle"] == "Engineer"
        assert "for Engineer was sent 7 days ago" in linkedin_note["message"]

    async def test_no_reminder_once_followed_up(self, db_session, test_user):
        stale = utcnow() - timedelta(days=8)
        parent = _email(test_user, "Globex", updated_at=stale)
        db_session.add(parent)
        await db_session.flush()
        db_session.add(_email(
            test_user,
            "Globex",
            message_type=EmailMessageType.FOLLOW_UP,
            parent_message_id=parent.id,
            status=ApplicationStatus.DRAFT,
            updated_at=stale,
        ))
        await db_session.commit()

        assert await NotificationService(db_session, test_user).create_followup_reminders() == 0

    async def test_reminder_window_follows_preference(self, db_session, test_user):
        test_user.followup_reminder_days = 14
        db_session.add(_email(test_user, "Globex", updated_at=utcnow() - timedelta(days=8)))
        await db_session.commit()

        assert await NotificationService(db_session, test_user).create_followup_reminders() == 0

    async def test_mark_as_read(self, db_session, test_user):
        db_session.add_all([
            Notification(user_id=test_user.id, title="One", message="First"),
            Notification(user_id=test_user.id, title="Two", message="Second"),
        ])
        await db_session.commit()
        service = NotificationService(db_session, test_user)
        first = (await db_session.execute(select(Notification).where(Notification.title == "One"))).scalar_one()

        assert await service.unread_count() == 2
        await service.mark_as_read(notification_id=first.id)
        assert await service.unread_count() == 1
        await service.mark_as_read(mark_all=True)
        assert await service.unread_count() == 0


class TestPayments:

    def test_charge_payload(self):
        payload = build_charge_payload("jane+jobs@example.com")

        assert payload["local_price"] == {"amount": "5.00", "currency": "USD"}
        assert payload["metadata"]["plan"] == "PLUS"
        assert payload["metadata"]["email"] == "jane+jobs@example.com"
        assert payload["redirect_url"].endswith("payment-success?email=jane%2Bjobs%40example.com")

    def test_webhook_signature(self):
        body = b'{"event": {}}'

        assert verify_webhook_signature(body, create_signature(body, "test-webhook-secret"))
        assert not verify_webhook_signature(body, "deadbeef")
        assert not verify_webhook_signature(body, None)

    async def test_create_charge_returns_hosted_url(self):
        response = httpx.Response(201, json={"data": {"id": "ch_1", "hosted_url": "https://pay.example/ch_1"}})

        with patch("app.services.payment_service.httpx.AsyncClient") as client_cls:
            client = MagicMock()
            client.post = AsyncMock(return_value=response)
            client_cls.return_value.__aenter__.return_value = client

            assert await create_charge("jane@example.com") == "https://pay.example/ch_1"

        assert client.post.call_args.kwargs["headers"] == {"X-CC-Api-Key": "test-commerce-key"}

    async def test_create_charge_error_response(self):
        response = httpx.Response(400, json={"error": {"message": "Invalid price"}})

        with patch("app.services.payment_service.httpx.AsyncClient") as client_cls:
            client = MagicMock()
            client.post = AsyncMock(return_value=response)
            client_cls.return_value.__aenter__.return_value = client

            with pytest.raises(PaymentError, match="Coinbase API error: 400 - Invalid price"):
                await create_charge("jane@example.com")

    async def test_create_charge_network_failure(self):
        with patch("app.services.payment_service.httpx.AsyncClient") as client_cls:
            client = MagicMock()
            client.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
            client_cls.return_value.__aenter__.return_value = client

            with pytest.raises(PaymentError, match="Coinbase API request failed: connection refused"):
                await create_charge("jane@example.com")

    async def test_confirmed_charge_upgrades_user(self, db_session, test_user):
        event = {
            "type": "charge:confirmed",
            "data": {"id": "ch_1", "metadata": {"email": "TEST@example.com", "plan": "PLUS"}},
        }

        assert await handle_webhook_event(db_session, event) == "TEST@example.com"
        assert test_user.user_type == UserType.PLUS

    @pytest.mark.parametrize(
        "event",
        [
            {"type": "charge:failed", "data": {"metadata": {"email": "test@example.com", "plan": "PLUS"}}},
            {"type": "charge:confirmed", "data": {"metadata": {"email": "test@example.com"}}},
            {"type": "charge:confirmed", "data": {"metadata": {"email": "nobody@example.com", "plan": "PLUS"}}},
        ],
    )
    async def test_other_events_change_nothing(self, db_session, test_user, event):
        assert await handle_webhook_event(db_session, event) is None
        assert test_user.user_type == UserType.FREE
