"""
Inbox SLA Service

Response-time SLA tracking for inbox conversations plus bulk inbox actions.

SLA status is a threshold label on the minutes elapsed since the last
inbound message:
    elapsed >= target                    -> breached
    elapsed >= at_risk_ratio * target    -> at_risk
    otherwise                            -> on_track
Conversations without a target, without messages, or that are closed carry
no status at all.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from database.models import Account, Conversation, utcnow
from services.notification_service import NotificationService
from services.users_repository import UsersRepository
from validators import ValidationError, validate_choice

logger = logging.getLogger(__name__)

SLA_ON_TRACK = 'on_track'
SLA_AT_RISK = 'at_risk'
SLA_BREACHED = 'breached'
SLA_STATUSES = (SLA_ON_TRACK, SLA_AT_RISK, SLA_BREACHED)

CONVERSATION_STATUSES = ('open', 'pending', 'closed', 'archived')
CLOSED_STATUSES = ('closed', 'archived')
BULK_ACTIONS = ('assign', 'change_status', 'archive', 'delete')


def calculate_sla_status(target_minutes: Optional[int], last_message_at: Optional[datetime],
                         now: datetime, at_risk_ratio: float = 0.75) -> Optional[str]:
    """Label elapsed time against the target. None when there is nothing to measure."""
    if not target_minutes or last_message_at is None:
        return None

    elapsed = (now - last_message_at).total_seconds() / 60
    if elapsed >= target_minutes:
        return SLA_BREACHED
    if elapsed >= at_risk_ratio * target_minutes:
        return SLA_AT_RISK
    return SLA_ON_TRACK


def minutes_remaining(target_minutes: Optional[int], last_message_at: Optional[datetime],
                      now: datetime) -> Optional[int]:
    """Whole minutes left before breach; negative once breached."""
    if not target_minutes or last_message_at is None:
        return None
    elapsed = (now - last_message_at).total_seconds() / 60
    return int(target_minutes - elapsed)


def round_percentage(part: int, total: int) -> int:
    """Percentage rounded half up; 0 for an empty total."""
    if not total:
        return 0
    return int(part * 100 / total + 0.5)


def build_sla_stats(statuses: List[str]) -> Dict:
    total = len(statuses)
    stats = {'total': total}
    for status in SLA_STATUSES:
        count = statuses.count(status)
        stats[status] = count
        stats[f'{status}_percentage'] = round_percentage(count, total)
    return stats


class InboxService:
    """SLA bookkeeping and bulk actions for one account's conversations."""

    def __init__(self, session: Session, account_id: str, at_risk_ratio: float = 0.75):
        self.session = session
        self.account_id = account_id
        self.at_risk_ratio = at_risk_ratio
        self.notifications = NotificationService(session, account_id)

    def _query(self):
        return self.session.query(Conversation).filter(
            Conversation.account_id == self.account_id
        )

    def recalculate(self, conversation: Conversation, now: datetime = None) -> bool:
        """
        Refresh one conversation's SLA status.

        Entering breached stamps sla_breached_at and notifies the assignee
        once. Returns True when the status changed.
        """
        now = now or utcnow()

        if conversation.status in CLOSED_STATUSES:
            new_status = None
        else:
            new_status = calculate_sla_status(
                conversation.sla_target_minutes, conversation.last_message_at,
                now, self.at_risk_ratio
            )

        previous = conversation.sla_status
        if new_status == previous:
            return False

        conversation.sla_status = new_status

        if new_status == SLA_BREACHED:
            conversation.sla_breached_at = now
            self._notify_breach(conversation)
        elif previous == SLA_BREACHED:
            conversation.sla_breached_at = None

        return True

    def _notify_breach(self, conversation: Conversation):
        subject = conversation.subject or 'Conversation'
        self.notifications.create_notification(
            title='SLA breached',
            message=f"{subject} has waited longer than {conversation.sla_target_minutes} minutes for a reply",
            notification_type='alert',
            priority='high',
            user_id=conversation.assigned_to,
            entity_type='conversation',
            entity_id=conversation.id
        )
        logger.warning(f"SLA breached for conversation {conversation.id}")

    def recalculate_all(self, now: datetime = None) -> int:
        """Recalculate every open conversation of the account. Returns how many changed."""
        now = now or utcnow()
        changed = 0
        for conversation in self._query().all():
            if self.recalculate(conversation, now):
                changed += 1
        self.session.flush()
        return changed

    def list_sla(self, status: str = None, include_stats: bool = False,
                 now: datetime = None) -> Tuple[List[Dict], Optional[Dict]]:
        """
        Conversations that carry an SLA status, freshly recalculated.

        Stats describe the filtered set.
        """
        if status:
            validate_choice(status, SLA_STATUSES, 'status')

        now = now or utcnow()
        self.recalculate_all(now)

        query = self._query().filter(Conversation.sla_status.isnot(None))
        if status:
            query = query.filter(Conversation.sla_status == status)
        conversations = query.order_by(Conversation.last_message_at).all()

        rows = []
        for conversation in conversations:
            data = conversation.to_dict()
            data['sla_minutes_remaining'] = minutes_remaining(
                conversation.sla_target_minutes, conversation.last_message_at, now
            )
            rows.append(data)

        stats = build_sla_stats([c.sla_status for c in conversations]) if include_stats else None
        return rows, stats

    def set_sla_target(self, conversation: Conversation, target_minutes: int,
                       now: datetime = None) -> Dict:
        conversation.sla_target_minutes = target_minutes
        self.recalculate(conversation, now)
        self.session.flush()
        logger.info(f"SLA target for conversation {conversation.id} set to {target_minutes} minutes")
        return conversation.to_dict()

    def find_owned(self, conversation_ids: List[str]) -> List[Conversation]:
        """The subset of ids that belong to this account."""
        return self._query().filter(Conversation.id.in_(conversation_ids)).all()

    def bulk_update(self, conversations: List[Conversation], action: str, data: Dict = None) -> int:
        """
        Apply one action to many conversations.

        Raises:
            ValidationError: unknown action or missing action data
        """
        validate_choice(action, BULK_ACTIONS, 'action')
        data = data or {}

        if action == 'assign':
            user_id = data.get('user_id')
            if not user_id:
                raise ValidationError('user_id is required for assign action', 'user_id')
            if not UsersRepository(self.session, self.account_id).get_user(user_id):
                raise ValidationError('user_id does not belong to this account', 'user_id')
            for conversation in conversations:
                conversation.assigned_to = user_id

        elif action == 'change_status':
            new_status = data.get('status')
            if not new_status:
                raise ValidationError('status is required for change_status action', 'status')
            validate_choice(new_status, CONVERSATION_STATUSES, 'status')
            for conversation in conversations:
                conversation.status = new_status
                self.recalculate(conversation)

        elif action == 'archive':
            for conversation in conversations:
                conversation.status = 'archived'
                self.recalculate(conversation)

        else:  # delete
            for conversation in conversations:
                self.session.delete(conversation)

        self.session.flush()
        logger.info(f"Bulk {action} applied to {len(conversations)} conversations")
        return len(conversations)


def recalculate_all_accounts(session: Session, at_risk_ratio: float = 0.75) -> int:
    """Background job body: refresh SLA status for every account."""
    changed = 0
    for (account_id,) in session.query(Account.id).all():
        changed += InboxService(session, account_id, at_risk_ratio).recalculate_all()
    return changed
