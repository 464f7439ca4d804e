# Overview: Service-layer operations for customer credit settings.

"""
Credit Policy

Owns the credit settings of a customer: limit, payment terms and whether
credit is enabled. The running balance (credit_balance_cents) is NOT a
setting; it is maintained by SaleEngine and PaymentAllocator only.

The limit is informational: sales are not blocked when it is exceeded,
the aggregator flags such customers as high risk instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Customer
from ..time_utils import utcnow
from ..validation import FieldErrors, as_bool
from .concurrency import lock_for_update, run_in_transaction
from .outstanding_service import credit_utilization

logger = logging.getLogger(__name__)

# 10,000,000.00
DEFAULT_MAX_CREDIT_LIMIT_CENTS = 1_000_000_000


class CreditPolicy:
    def __init__(
        self,
        session: Session,
        max_credit_limit_cents: int = DEFAULT_MAX_CREDIT_LIMIT_CENTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.max_credit_limit_cents = max_credit_limit_cents
        self.clock = clock

    def update_credit_settings(
        self,
        customer_id,
        credit_limit_cents,
        payment_terms,
        is_credit_enabled=None,
    ) -> Customer:
        """
        Replace a customer's credit settings.

        Args:
            customer_id: Customer to update
            credit_limit_cents: New limit in cents, or None for "no limit"
            payment_terms: Label such as "Net 30" (required)
            is_credit_enabled: None keeps the current flag

        Raises:
            ValidationFailed: bad limit or empty terms
            NotFound: customer does not exist
        """
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        limit = errors.integer(
            credit_limit_cents, "credit_limit_cents",
            minimum=0, maximum=self.max_credit_limit_cents, required=False, label="Credit limit",
        )
        terms = payment_terms.strip() if isinstance(payment_terms, str) else None
        if not terms:
            errors.add("Payment terms are required")
        elif len(terms) > 64:
            errors.add("Payment terms must be at most 64 characters")
        errors.raise_if_any()

        def _op() -> Customer:
            customer = lock_for_update(self.session.query(Customer).filter_by(id=cid)).first()
            if customer is None:
                raise NotFound("Customer not found")

            customer.credit_limit_cents = limit
            customer.payment_terms = terms
            if is_credit_enabled is not None:
                customer.is_credit_enabled = as_bool(is_credit_enabled)
            customer.updated_at = self.clock()
            self.session.flush()
            return customer

        customer = run_in_transaction(self.session, _op)
        logger.info(
            "Updated credit settings for customer %s: limit=%s terms=%r enabled=%s",
            customer.id, customer.credit_limit_cents, customer.payment_terms, customer.is_credit_enabled,
        )
        return customer

    def get_credit_status(self, customer_id) -> dict:
        errors = FieldErrors()
        cid = errors.integer(customer_id, "customer_id", minimum=1, label="Valid customer ID")
        errors.raise_if_any()

        customer = self.session.get(Customer, cid)
        if customer is None:
            raise NotFound("Customer not found")

        limit = customer.credit_limit_cents
        balance = customer.credit_balance_cents or 0
        return {
            "customerId": customer.id,
            "creditLimit": limit,
            "creditBalance": balance,
            "availableCredit": max(limit - balance, 0) if limit is not None else None,
            "creditUtilization": credit_utilization(balance, limit),
            "paymentTerms": customer.payment_terms,
            "isCreditEnabled": customer.is_credit_enabled,
        }
