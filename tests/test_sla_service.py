"""
Tests for inbox SLA tracking
"""
import pytest
from datetime import datetime, timedelta

from database.connection import get_db_session
from database.models import Conversation, Notification
from services.sla_service import (
    InboxService,
    build_sla_stats,
    calculate_sla_status,
    minutes_remaining,
    recalculate_all_accounts,
    round_percentage
)
from validators import ValidationError

NOW = datetime(2026, 10, 19, 12, 0)


def minutes_ago(minutes):
    return NOW - timedelta(minutes=minutes)


@pytest.mark.unit
class TestCalculateSlaStatus:

    def test_on_track(self):
        assert calculate_sla_status(60, minutes_ago(30), NOW) == 'on_track'

    def test_at_risk_threshold_is_inclusive(self):
        assert calculate_sla_status(60, minutes_ago(45), NOW) == 'at_risk'
        assert calculate_sla_status(60, minutes_ago(44), NOW) == 'on_track'

    def test_breached_at_target(self):
        assert calculate_sla_status(60, minutes_ago(60), NOW) == 'breached'

    def test_custom_ratio(self):
        assert calculate_sla_status(60, minutes_ago(31), NOW, at_risk_ratio=0.5) == 'at_risk'

    def test_nothing_to_measure(self):
        assert calculate_sla_status(None, minutes_ago(30), NOW) is None
        assert calculate_sla_status(60, None, NOW) is None

    def test_minutes_remaining(self):
        assert minutes_remaining(60, minutes_ago(15), NOW) == 45
        assert minutes_remaining(60, minutes_ago(90), NOW) == -30
        assert minutes_remaining(None, minutes_ago(90), NOW) is None


@pytest.mark.unit
class TestSlaStats:

    def test_round_half_up(self):
        assert round_percentage(1, 8) == 13
        assert round_percentage(0, 0) == 0

    def test_stats_breakdown(self):
        stats = build_sla_stats(['on_track', 'at_risk', 'on_track'])
        assert stats['total'] == 3
        assert stats['on_track'] == 2
        assert stats['on_track_percentage'] == 67
        assert stats['at_risk_percentage'] == 33
        assert stats['breached'] == 0


@pytest.mark.integration
class TestInboxService:

    def _notifications(self, db):
        return db.query(Notification).filter(Notification.entity_type == 'conversation').all()

    def test_breach_notifies_assignee_once(self, factory, seeded):
        csr_id = seeded['users']['csr']
        conv_id = factory.conversation(
            subject='Leaking boiler', sla_target_minutes=30,
            last_message_at=minutes_ago(40), assigned_to=csr_id
        )

        with get_db_session() as db:
            service = InboxService(db, seeded['account_id'])
            conversation = db.get(Conversation, conv_id)
            assert service.recalculate(conversation, NOW) is True
            assert conversation.sla_status == 'breached'
            assert conversation.sla_breached_at == NOW
            assert service.recalculate(conversation, NOW + timedelta(minutes=5)) is False
            db.flush()

            notifications = self._notifications(db)
            assert len(notifications) == 1
            assert notifications[0].user_id == csr_id
            assert notifications[0].priority == 'high'

    def test_closing_clears_status(self, factory, seeded):
        conv_id = factory.conversation(
            sla_target_minutes=30, last_message_at=minutes_ago(40),
            sla_status='breached', sla_breached_at=minutes_ago(10)
        )
        with get_db_session() as db:
            conversation = db.get(Conversation, conv_id)
            conversation.status = 'closed'
            InboxService(db, seeded['account_id']).recalculate(conversation, NOW)
            assert conversation.sla_status is None
            assert conversation.sla_breached_at is None

    def test_list_sla_filters_and_counts(self, factory, seeded):
        factory.conversation(sla_target_minutes=60, last_message_at=minutes_ago(10))
        factory.conversation(sla_target_minutes=60, last_message_at=minutes_ago(50))
        factory.conversation(sla_target_minutes=60, last_message_at=minutes_ago(70))
        factory.conversation(last_message_at=minutes_ago(70))

        with get_db_session() as db:
            rows, stats = InboxService(db, seeded['account_id']).list_sla(include_stats=True, now=NOW)
            assert len(rows) == 3
            assert stats['breached'] == 1
            assert stats['at_risk'] == 1
            assert stats['on_track'] == 1

            rows, stats = InboxService(db, seeded['account_id']).list_sla(status='breached', now=NOW)
            assert [r['sla_minutes_remaining'] for r in rows] == [-10]
            assert stats is None

    def test_list_sla_rejects_unknown_status(self, seeded):
        with get_db_session() as db:
            with pytest.raises(ValidationError):
                InboxService(db, seeded['account_id']).list_sla(status='late')

    def test_bulk_assign_requires_account_member(self, factory, seeded):
        conv_id = factory.conversation()
        with get_db_session() as db:
            service = InboxService(db, seeded['account_id'])
            conversations = service.find_owned([conv_id])
            with pytest.raises(ValidationError):
                service.bulk_update(conversations, 'assign', {'user_id': seeded['outsider_id']})

    def test_bulk_archive(self, factory, seeded):
        ids = [factory.conversation(), factory.conversation()]
        with get_db_session() as db:
            service = InboxService(db, seeded['account_id'])
            assert service.bulk_update(service.find_owned(ids), 'archive') == 2
        assert {factory.fetch(Conversation, i)['status'] for i in ids} == {'archived'}

    def test_recalculate_all_accounts(self, factory, other_factory):
        factory.conversation(sla_target_minutes=1, last_message_at=datetime(2026, 1, 1))
        other_factory.conversation(sla_target_minutes=1, last_message_at=datetime(2026, 1, 1))
        with get_db_session() as db:
            assert recalculate_all_accounts(db) == 2
