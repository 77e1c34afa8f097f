"""
Analytics Service - owner/admin reports.

Each report loads the account's rows once and reduces them in Python.
Revenue only counts jobs that are completed or paid.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from database.models import Contact, Job, utcnow
from services.users_repository import UsersRepository

logger = logging.getLogger(__name__)

REVENUE_STATUSES = ('completed', 'paid')
TEAM_ROLES = ('tech', 'dispatcher')


def _rate(part, total):
    return (part / total) * 100 if total else 0


def _revenue(jobs):
    return sum(j.total_amount or 0 for j in jobs if j.status in REVENUE_STATUSES)


def _period(start: Optional[datetime], end: Optional[datetime]) -> Dict:
    return {
        'start': start.isoformat() if start else None,
        'end': end.isoformat() if end else None,
    }


class AnalyticsService:
    """Reports over one account."""

    def __init__(self, session: Session, account_id: str):
        self.session = session
        self.account_id = account_id

    def _jobs(self, start=None, end=None):
        query = self.session.query(Job).filter(Job.account_id == self.account_id)
        if start:
            query = query.filter(Job.created_at >= start)
        if end:
            query = query.filter(Job.created_at <= end)
        return query

    def team_metrics(self, start: datetime = None, end: datetime = None) -> Dict:
        """Per-member job counts, completion rate and revenue for techs and dispatchers."""
        members = UsersRepository(self.session, self.account_id).list_users(
            roles=TEAM_ROLES, active_only=False
        )
        jobs = self._jobs(start, end).filter(Job.tech_assigned_id.isnot(None)).all()

        jobs_by_member = defaultdict(list)
        for job in jobs:
            jobs_by_member[job.tech_assigned_id].append(job)

        member_rows = []
        for member in members:
            member_jobs = jobs_by_member.get(member.id, [])
            completed = [j for j in member_jobs if j.status in REVENUE_STATUSES]
            revenue = _revenue(member_jobs)
            member_rows.append({
                'user_id': member.id,
                'full_name': member.full_name,
                'role': member.role,
                'total_jobs': len(member_jobs),
                'completed_jobs': len(completed),
                'completion_rate': _rate(len(completed), len(member_jobs)),
                'revenue': revenue,
                'average_job_value': revenue / len(completed) if completed else 0,
            })

        completed_total = sum(1 for j in jobs if j.status in REVENUE_STATUSES)
        total_revenue = _revenue(jobs)

        return {
            'period': _period(start, end),
            'team': {
                'total_members': len(members),
                'total_jobs': len(jobs),
                'completed_jobs': completed_total,
                'completion_rate': _rate(completed_total, len(jobs)),
                'total_revenue': total_revenue,
                'average_revenue_per_job': total_revenue / completed_total if completed_total else 0,
            },
            'members': member_rows,
        }

    def marketing_roi(self, start: datetime = None, end: datetime = None) -> Dict:
        """Contacts, jobs and revenue grouped by the contact's lead source."""
        query = self.session.query(Contact).filter(
            Contact.account_id == self.account_id,
            Contact.lead_source.isnot(None)
        )
        if start:
            query = query.filter(Contact.created_at >= start)
        if end:
            query = query.filter(Contact.created_at <= end)
        contacts = query.all()

        contact_ids = [c.id for c in contacts]
        jobs = []
        if contact_ids:
            jobs = self.session.query(Job).filter(
                Job.account_id == self.account_id,
                Job.contact_id.in_(contact_ids)
            ).all()

        jobs_by_contact = defaultdict(list)
        for job in jobs:
            jobs_by_contact[job.contact_id].append(job)

        by_source = {}
        for contact in contacts:
            source = contact.lead_source or 'unknown'
            metrics = by_source.setdefault(source, {'source': source, 'contacts': 0, 'jobs': 0, 'revenue': 0})
            contact_jobs = jobs_by_contact.get(contact.id, [])
            metrics['contacts'] += 1
            metrics['jobs'] += len(contact_jobs)
            metrics['revenue'] += _revenue(contact_jobs)

        for metrics in by_source.values():
            metrics['conversion_rate'] = _rate(metrics['jobs'], metrics['contacts'])

        total_revenue = _revenue(jobs)
        return {
            'period': _period(start, end),
            'overall': {
                'total_contacts': len(contacts),
                'total_jobs': len(jobs),
                'conversion_rate': _rate(len(jobs), len(contacts)),
                'total_revenue': total_revenue,
                'revenue_per_contact': total_revenue / len(contacts) if contacts else 0,
            },
            'by_source': sorted(by_source.values(), key=lambda m: m['revenue'], reverse=True),
        }

    def customer_retention(self, period_days: int = 30, now: datetime = None) -> Dict:
        """
        Active customers had a job created within the period. Churned
        customers have jobs, but none recent.
        """
        cutoff = (now or utcnow()) - timedelta(days=period_days)

        contacts = self.session.query(Contact).filter(
            Contact.account_id == self.account_id
        ).order_by(Contact.first_name, Contact.last_name).all()
        jobs = self.session.query(Job).filter(
            Job.account_id == self.account_id,
            Job.contact_id.isnot(None)
        ).all()

        jobs_by_contact = defaultdict(list)
        for job in jobs:
            jobs_by_contact[job.contact_id].append(job)

        customers = []
        for contact in contacts:
            contact_jobs = jobs_by_contact.get(contact.id, [])
            recent = [j for j in contact_jobs if j.created_at and j.created_at >= cutoff]
            last_job = max((j.created_at for j in contact_jobs if j.created_at), default=None)
            customers.append({
                'contact_id': contact.id,
                'name': contact.full_name,
                'total_jobs': len(contact_jobs),
                'recent_jobs': len(recent),
                'is_active': bool(recent),
                'last_job_date': last_job.isoformat() if last_job else None,
            })

        total = len(customers)
        active = sum(1 for c in customers if c['is_active'])
        churned = sum(1 for c in customers if not c['is_active'] and c['total_jobs'] > 0)

        return {
            'period_days': period_days,
            'overall': {
                'total_customers': total,
                'active_customers': active,
                'retention_rate': _rate(active, total),
                'churned_customers': churned,
                'churn_rate': _rate(churned, total),
            },
            'customers': customers,
        }
