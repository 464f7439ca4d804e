"""
Outstanding / aging aggregator tests.

Verifies:
- Bucket boundaries (30 / 31 / 90 / 91 days)
- List view: one row per customer, aged by the newest outstanding sale
- Detail view: each sale bucketed on its own age
- Report: breakdown, risk classification, top debtors
"""

import pytest

from posledger.errors import NotFound, ValidationFailed
from posledger.services.outstanding_service import (
    OutstandingAggregator,
    aging_bucket,
    credit_utilization,
    risk_level,
)


@pytest.fixture
def aggregator(db_session, clock):
    return OutstandingAggregator(db_session, clock=clock)


# =============================================================================
# BUCKETS & RISK
# =============================================================================


class TestBuckets:
    @pytest.mark.parametrize("days,bucket", [
        (0, "current"),
        (30, "current"),
        (31, "31-60"),
        (60, "31-60"),
        (61, "61-90"),
        (90, "61-90"),
        (91, "90+"),
        (400, "90+"),
    ])
    def test_boundaries(self, days, bucket):
        assert aging_bucket(days) == bucket

    @pytest.mark.parametrize("days,bucket", [(30, "current"), (31, "31-60"), (90, "61-90"), (91, "90+")])
    def test_boundaries_from_sale_dates(self, aggregator, make_customer, make_sale, days, bucket):
        customer = make_customer()
        make_sale(customer, total=1000, days_ago=days)

        row = aggregator.get_outstanding()["outstandingPayments"][0]

        assert row["days_outstanding"] == days
        assert row["aging_bucket"] == bucket

    @pytest.mark.parametrize("days,total,limit,level", [
        (91, 100, None, "highRisk"),
        (10, 5001, 5000, "highRisk"),
        (10, 5000, 5000, "lowRisk"),
        (61, 100, None, "mediumRisk"),
        (90, 100, 1000, "mediumRisk"),
        (60, 100, None, "lowRisk"),
        (75, 2000, 1000, "highRisk"),
    ])
    def test_risk_level(self, days, total, limit, level):
        assert risk_level(days, total, limit) == level

    def test_credit_utilization(self):
        assert credit_utilization(2500, 10000) == 25.0
        assert credit_utilization(1, 3) == 33.33
        assert credit_utilization(2500, None) == 0
        assert credit_utilization(2500, 0) == 0


# =============================================================================
# LIST VIEW
# =============================================================================


class TestOutstandingList:
    def test_one_row_per_customer_aged_by_newest_sale(self, aggregator, make_customer, make_sale):
        customer = make_customer("Kofi", phone="0241112222")
        old = make_sale(customer, total=3000, days_ago=100)
        new = make_sale(customer, total=2000, paid=500, days_ago=12)
        make_sale(customer, total=700, paid=700, days_ago=3)

        result = aggregator.get_outstanding()

        assert result["totalCustomers"] == 1
        row = result["outstandingPayments"][0]
        assert row["customer_name"] == "Kofi"
        assert row["total_outstanding_cents"] == 4500
        assert row["outstanding_sales_count"] == 2
        assert row["days_outstanding"] == 12
        assert row["aging_bucket"] == "current"
        assert row["sale_ids"] == [old.id, new.id]
        assert result["totalAmount"] == 4500

    def test_ordering_and_summary(self, aggregator, make_customer, make_sale):
        small = make_customer("Small")
        big = make_customer("Big")
        tie = make_customer("Tie")
        make_sale(small, total=1000, days_ago=5)
        make_sale(big, total=9000, days_ago=45)
        make_sale(tie, total=1000, days_ago=95)

        result = aggregator.get_outstanding()

        assert [r["customer_name"] for r in result["outstandingPayments"]] == ["Big", "Small", "Tie"]
        assert result["summary"] == {
            "current": {"count": 1, "amount": 1000},
            "overdue": {"count": 2, "amount": 10000},
        }

    def test_no_debt_no_rows(self, aggregator, make_customer, make_sale):
        customer = make_customer()
        make_sale(customer, total=500, paid=500)

        result = aggregator.get_outstanding()

        assert result["outstandingPayments"] == []
        assert result["totalAmount"] == 0
        assert result["totalCustomers"] == 0

    def test_search_by_name_or_phone(self, aggregator, make_customer, make_sale):
        make_sale(make_customer("Akosua Boateng", phone="0201110000"), total=100)
        make_sale(make_customer("Yaw Darko", phone="0559998888"), total=200)

        by_name = aggregator.get_outstanding(search_term="akosua")
        by_phone = aggregator.get_outstanding(search_term="99988")

        assert [r["customer_name"] for r in by_name["outstandingPayments"]] == ["Akosua Boateng"]
        assert [r["customer_name"] for r in by_phone["outstandingPayments"]] == ["Yaw Darko"]

    def test_search_wildcards_are_literal(self, aggregator, make_customer, make_sale):
        make_sale(make_customer("Ama_K"), total=100)
        make_sale(make_customer("AmaXK"), total=200)

        result = aggregator.get_outstanding(search_term="a_k")

        assert [r["customer_name"] for r in result["outstandingPayments"]] == ["Ama_K"]
        assert aggregator.get_outstanding(search_term="%")["outstandingPayments"] == []

    @pytest.mark.parametrize("aging_filter,expected", [
        ("current", ["A"]),
        ("31-60", ["B"]),
        ("61-90", ["C"]),
        ("90+", ["D"]),
        ("overdue", ["D", "C", "B"]),
        ("all", ["D", "C", "B", "A"]),
        (None, ["D", "C", "B", "A"]),
    ])
    def test_aging_filter(self, aggregator, make_customer, make_sale, aging_filter, expected):
        for name, days, total in [("A", 10, 100), ("B", 40, 200), ("C", 70, 300), ("D", 120, 400)]:
            make_sale(make_customer(name), total=total, days_ago=days)

        result = aggregator.get_outstanding(aging_filter=aging_filter)

        assert [r["customer_name"] for r in result["outstandingPayments"]] == expected

    def test_invalid_aging_filter(self, aggregator):
        with pytest.raises(ValidationFailed):
            aggregator.get_outstanding(aging_filter="ancient")

    def test_paging_keeps_totals(self, aggregator, make_customer, make_sale):
        for index in range(5):
            make_sale(make_customer(f"C{index}"), total=(index + 1) * 100)

        page = aggregator.get_outstanding(page=2, limit=2)

        assert [r["customer_name"] for r in page["outstandingPayments"]] == ["C2", "C1"]
        assert page["totalCustomers"] == 5
        assert page["totalAmount"] == 1500

    def test_customer_filter(self, aggregator, make_customer, make_sale):
        first = make_customer()
        make_sale(first, total=100)
        make_sale(make_customer(), total=200)

        result = aggregator.get_outstanding(customer_id=first.id)

        assert [r["customer_id"] for r in result["outstandingPayments"]] == [first.id]


# =============================================================================
# DETAIL VIEW
# =============================================================================


class TestCustomerDetail:
    def test_each_sale_bucketed_on_its_own_age(self, aggregator, allocator, make_customer, make_sale):
        customer = make_customer(credit_limit_cents=20000)
        s_old = make_sale(customer, total=4000, days_ago=95)
        s_mid = make_sale(customer, total=3000, days_ago=45)
        s_new = make_sale(customer, total=2000, days_ago=5)
        allocator.process_payment(customer.id, 1000, method="card")

        detail = aggregator.get_customer_detail(customer.id)

        assert [s["id"] for s in detail["outstandingSales"]] == [s_old.id, s_mid.id, s_new.id]
        assert detail["totalOutstanding"] == 8000
        assert detail["agingAnalysis"] == {
            "current": {"count": 1, "amount": 2000},
            "31-60": {"count": 1, "amount": 3000},
            "61-90": {"count": 0, "amount": 0},
            "90+": {"count": 1, "amount": 3000},
        }
        assert detail["creditUtilization"] == 40.0
        assert detail["customer"]["id"] == customer.id
        assert len(detail["paymentHistory"]) == 2
        assert detail["paymentSummary"]["totalPaid"] == 1000
        assert detail["paymentSummary"]["paymentCount"] == 1

    def test_no_limit_means_zero_utilization(self, aggregator, make_customer, make_sale):
        customer = make_customer()
        make_sale(customer, total=500)

        assert aggregator.get_customer_detail(customer.id)["creditUtilization"] == 0

    def test_missing_customer(self, aggregator):
        with pytest.raises(NotFound):
            aggregator.get_customer_detail(31337)


# =============================================================================
# REPORT
# =============================================================================


class TestReport:
    def test_report(self, aggregator, make_customer, make_sale, clock):
        make_sale(make_customer("Fresh"), total=1000, days_ago=3)
        make_sale(make_customer("Over Limit", credit_limit_cents=500), total=1500, days_ago=3)
        make_sale(make_customer("Sixty Five"), total=2000, days_ago=65)
        make_sale(make_customer("Ancient"), total=2500, days_ago=200)

        report = aggregator.get_report()

        assert report["summary"] == {
            "totalCustomers": 4,
            "totalOutstanding": 7000,
            "averageOutstanding": 1750,
        }
        assert report["agingBreakdown"] == {"current": 2, "31-60": 0, "61-90": 1, "90+": 1}
        assert report["riskAnalysis"] == {
            "highRisk": {"count": 2, "amount": 4000},
            "mediumRisk": {"count": 1, "amount": 2000},
            "lowRisk": {"count": 1, "amount": 1000},
        }
        assert [d["customerName"] for d in report["topDebtors"]] == ["Ancient", "Sixty Five", "Over Limit", "Fresh"]
        assert report["topDebtors"][0] == {
            "customerId": report["topDebtors"][0]["customerId"],
            "customerName": "Ancient",
            "outstandingAmount": 2500,
            "daysPastDue": 200,
            "salesCount": 1,
        }
        assert report["generatedAt"] == "2026-03-01T12:00:00Z"

    def test_risk_buckets_partition_customers(self, aggregator, make_customer, make_sale):
        for index, days in enumerate([0, 30, 60, 61, 90, 91, 150]):
            make_sale(make_customer(f"R{index}", credit_limit_cents=1000), total=500 + index * 200, days_ago=days)

        report = aggregator.get_report()

        counts = sum(level["count"] for level in report["riskAnalysis"].values())
        amounts = sum(level["amount"] for level in report["riskAnalysis"].values())
        assert counts == report["summary"]["totalCustomers"]
        assert amounts == report["summary"]["totalOutstanding"]

    def test_top_debtors_capped_at_ten(self, aggregator, make_customer, make_sale):
        for index in range(12):
            make_sale(make_customer(f"D{index}"), total=100 + index)

        report = aggregator.get_report()

        assert len(report["topDebtors"]) == 10
        assert report["topDebtors"][0]["outstandingAmount"] == 111

    def test_empty_report(self, aggregator):
        report = aggregator.get_report()

        assert report["summary"]["averageOutstanding"] == 0
        assert report["topDebtors"] == []
