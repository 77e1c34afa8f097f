"""
Billing Repository - Database access layer for estimates and invoices.

Numbers are sequential per account: EST-0001, EST-0002, ... and
INV-0001, ... Invoice numbers come from a counter on the account, so a
deleted invoice's number is never handed out again. Estimates form
version families: the first estimate is the root, later versions point
at it through parent_estimate_id.
"""

import logging
import re
from typing import List, Optional, Dict

from sqlalchemy.orm import Session
from sqlalchemy import or_

from database.models import Account, Contact, Estimate, EventLog, Invoice, Job, utcnow
from validators import (
    ValidationError, parse_date, parse_float, sanitize_string, validate_choice
)

logger = logging.getLogger(__name__)

ESTIMATE_STATUSES = ('draft', 'sent', 'viewed', 'accepted', 'rejected')
INVOICE_STATUSES = ('draft', 'sent', 'paid', 'overdue', 'cancelled')
INVOICE_FIELDS = ('amount', 'tax_amount', 'total_amount', 'status', 'due_date', 'notes')

NUMBER_PATTERN = re.compile(r'(\d+)$')


def highest_number(existing: List[str]) -> int:
    """Largest numeric suffix among existing numbers, 0 when there is none."""
    highest = 0
    for number in existing:
        match = NUMBER_PATTERN.search(number or '')
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def format_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:04d}"


def next_number(prefix: str, existing: List[str]) -> str:
    """Next PREFIX-NNNN after the highest numeric suffix in existing."""
    return format_number(prefix, highest_number(existing) + 1)


def _money(value: float) -> float:
    return round(value, 2)


def calculate_totals(line_items, tax_rate: float = 0) -> Dict:
    """
    Price a list of line items.

    Each item needs quantity and unit_price; amount is added to the item.
    tax_rate is a percentage.
    """
    if not isinstance(line_items, list):
        raise ValidationError('line_items must be a list', 'line_items')

    priced = []
    subtotal = 0.0
    for index, item in enumerate(line_items):
        if not isinstance(item, dict):
            raise ValidationError(f'line_items[{index}] must be an object', 'line_items')
        quantity = parse_float(item.get('quantity', 1), 'quantity')
        unit_price = parse_float(item.get('unit_price', 0), 'unit_price')
        if quantity < 0 or unit_price < 0:
            raise ValidationError('quantity and unit_price cannot be negative', 'line_items')
        amount = _money(quantity * unit_price)
        priced.append(dict(item, quantity=quantity, unit_price=unit_price, amount=amount))
        subtotal += amount

    if tax_rate < 0:
        raise ValidationError('tax_rate cannot be negative', 'tax_rate')

    subtotal = _money(subtotal)
    tax_amount = _money(subtotal * tax_rate / 100)
    return {
        'line_items': priced,
        'subtotal': subtotal,
        'tax_rate': tax_rate,
        'tax_amount': tax_amount,
        'total_amount': _money(subtotal + tax_amount),
    }


class BillingRepository:
    """Estimates and invoices of one account."""

    def __init__(self, session: Session, account_id: str, user_id: str = None):
        self.session = session
        self.account_id = account_id
        self.user_id = user_id

    def _log_event(self, entity_type: str, entity_id: str, event_type: str,
                   description: str = None, metadata: Dict = None):
        self.session.add(EventLog(
            account_id=self.account_id,
            actor_type='user' if self.user_id else 'system',
            actor_id=self.user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            description=description,
            extra_data=metadata or {}
        ))

    def _owned(self, model, row_id: Optional[str], field: str):
        if not row_id:
            return None
        row = self.session.query(model).filter(
            model.id == row_id, model.account_id == self.account_id
        ).first()
        if not row:
            raise ValidationError(f'{field} does not belong to this account', field)
        return row

    # =========================================================================
    # ESTIMATES
    # =========================================================================

    def list_estimates(self, status: str = None) -> List[Estimate]:
        query = self.session.query(Estimate).filter(Estimate.account_id == self.account_id)
        if status:
            validate_choice(status, ESTIMATE_STATUSES, 'status')
            query = query.filter(Estimate.status == status)
        return query.order_by(Estimate.created_at.desc()).all()

    def _next_estimate_number(self) -> str:
        numbers = [n for (n,) in self.session.query(Estimate.estimate_number).filter(
            Estimate.account_id == self.account_id
        ).all()]
        return next_number('EST', numbers)

    def create_estimate(self, data: Dict) -> Estimate:
        self._owned(Contact, data.get('contact_id'), 'contact_id')
        self._owned(Job, data.get('job_id'), 'job_id')
        status = data.get('status', 'draft')
        validate_choice(status, ESTIMATE_STATUSES, 'status')

        totals = calculate_totals(
            data.get('line_items') or [],
            parse_float(data.get('tax_rate') or 0, 'tax_rate')
        )

        estimate = Estimate(
            account_id=self.account_id,
            contact_id=data.get('contact_id'),
            job_id=data.get('job_id'),
            estimate_number=self._next_estimate_number(),
            title=sanitize_string(data['title'], 255) if data.get('title') else None,
            status=status,
            version=1,
            created_by=self.user_id,
            **totals
        )
        self.session.add(estimate)
        self.session.flush()

        self._log_event('estimate', estimate.id, 'CREATED',
                        f"Estimate {estimate.estimate_number} was created",
                        {'total_amount': estimate.total_amount})
        logger.info(f"Created estimate: {estimate.estimate_number}")
        return estimate

    def list_versions(self, estimate: Estimate) -> List[Estimate]:
        """Every estimate in the family, root first."""
        root_id = estimate.parent_estimate_id or estimate.id
        return self.session.query(Estimate).filter(
            Estimate.account_id == self.account_id,
            or_(Estimate.id == root_id, Estimate.parent_estimate_id == root_id)
        ).order_by(Estimate.version).all()

    def create_version(self, estimate: Estimate) -> Estimate:
        """Copy estimate into a new draft at the end of its family."""
        family = self.list_versions(estimate)
        root_id = estimate.parent_estimate_id or estimate.id

        version = Estimate(
            account_id=self.account_id,
            contact_id=estimate.contact_id,
            job_id=estimate.job_id,
            estimate_number=estimate.estimate_number,
            title=estimate.title,
            status='draft',
            line_items=list(estimate.line_items or []),
            subtotal=estimate.subtotal,
            tax_rate=estimate.tax_rate,
            tax_amount=estimate.tax_amount,
            total_amount=estimate.total_amount,
            version=max(e.version for e in family) + 1,
            parent_estimate_id=root_id,
            created_by=self.user_id
        )
        self.session.add(version)
        self.session.flush()

        self._log_event('estimate', version.id, 'VERSION_CREATED',
                        metadata={'parent_estimate_id': root_id, 'version': version.version})
        return version

    def track_view(self, estimate: Estimate) -> Estimate:
        """Stamp the first view; a sent estimate becomes viewed."""
        if estimate.viewed_at is None:
            estimate.viewed_at = utcnow()
            self._log_event('estimate', estimate.id, 'VIEWED')
        if estimate.status == 'sent':
            estimate.status = 'viewed'
        self.session.flush()
        return estimate

    # =========================================================================
    # INVOICES
    # =========================================================================

    def list_invoices(self, status: str = None) -> List[Invoice]:
        query = self.session.query(Invoice).filter(Invoice.account_id == self.account_id)
        if status:
            validate_choice(status, INVOICE_STATUSES, 'status')
            query = query.filter(Invoice.status == status)
        return query.order_by(Invoice.created_at.desc()).all()

    def _next_invoice_number(self) -> str:
        """
        Take the next number from the account's invoice sequence.

        The account row is locked until commit so concurrent creates queue
        up. Rows numbered before the sequence existed still count.
        """
        account = self.session.query(Account).filter(
            Account.id == self.account_id
        ).with_for_update().one()
        numbers = [n for (n,) in self.session.query(Invoice.invoice_number).filter(
            Invoice.account_id == self.account_id
        ).all()]

        sequence = max(account.invoice_sequence or 0, highest_number(numbers)) + 1
        account.invoice_sequence = sequence
        return format_number('INV', sequence)

    def _amount(self, data: Dict, key: str, default: float = 0) -> float:
        value = data.get(key)
        if value is None:
            return default
        value = parse_float(value, key)
        if value < 0:
            raise ValidationError(f'{key} cannot be negative', key)
        return value

    def create_invoice(self, data: Dict) -> Invoice:
        """Amount and contact default from the job when one is given."""
        job = self._owned(Job, data.get('job_id'), 'job_id')
        contact_id = data.get('contact_id') or (job.contact_id if job else None)
        self._owned(Contact, contact_id, 'contact_id')

        status = data.get('status', 'draft')
        validate_choice(status, INVOICE_STATUSES, 'status')

        amount = self._amount(data, 'amount', (job.total_amount or 0) if job else 0)
        tax_amount = self._amount(data, 'tax_amount')
        total_amount = self._amount(data, 'total_amount', _money(amount + tax_amount))

        invoice = Invoice(
            account_id=self.account_id,
            job_id=job.id if job else None,
            contact_id=contact_id,
            invoice_number=self._next_invoice_number(),
            amount=amount,
            tax_amount=tax_amount,
            total_amount=total_amount,
            status=status,
            due_date=parse_date(data['due_date'], 'due_date') if data.get('due_date') else None,
            paid_at=utcnow() if status == 'paid' else None,
            notes=data.get('notes')
        )
        self.session.add(invoice)
        self.session.flush()

        self._log_event('invoice', invoice.id, 'CREATED',
                        f"Invoice {invoice.invoice_number} was created",
                        {'job_id': invoice.job_id, 'total_amount': total_amount})
        logger.info(f"Created invoice: {invoice.invoice_number}")
        return invoice

    def update_invoice(self, invoice: Invoice, data: Dict) -> Invoice:
        """
        Raises:
            ValidationError: no writable field present, or a bad value
        """
        updates = {k: data[k] for k in INVOICE_FIELDS if k in data}
        if not updates:
            raise ValidationError('No valid fields to update')

        for key in ('amount', 'tax_amount', 'total_amount'):
            if key in updates:
                updates[key] = self._amount(updates, key)
        if 'status' in updates:
            validate_choice(updates['status'], INVOICE_STATUSES, 'status')
        if 'due_date' in updates:
            updates['due_date'] = parse_date(updates['due_date'], 'due_date') if updates['due_date'] else None

        old_status = invoice.status
        for key, value in updates.items():
            setattr(invoice, key, value)

        if invoice.status == 'paid' and old_status != 'paid':
            invoice.paid_at = utcnow()

        self.session.flush()
        self._log_event(
            'invoice', invoice.id,
            'STATUS_CHANGED' if invoice.status != old_status else 'UPDATED',
            metadata={'fields': sorted(updates), 'old_status': old_status, 'new_status': invoice.status}
        )
        return invoice

    def delete_invoice(self, invoice: Invoice) -> None:
        self._log_event('invoice', invoice.id, 'DELETED',
                        f"Invoice {invoice.invoice_number} was deleted")
        self.session.delete(invoice)
        self.session.flush()
        logger.info(f"Deleted invoice: {invoice.invoice_number}")
