"""
Tests for the insights statistics and InsightsService

Pure functions are tested directly; the service is tested with its
repositories replaced by mocks.
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from app.core.errors import NotFound
from app.domain.product import Product
from app.services.insights_service import (
    InsightsService,
    churn_risk,
    detect_anomalies,
    exponential_smoothing,
    forecast,
    linear_trend,
    moving_average,
    reorder_recommendation,
    rfm_scores,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


class TestSeriesHelpers:

    def test_moving_average_uses_partial_windows(self):
        assert moving_average([1, 2, 3, 4], window=2) == [1.0, 1.5, 2.5, 3.5]

    def test_moving_average_empty(self):
        assert moving_average([]) == []

    def test_exponential_smoothing_seeds_with_first_value(self):
        assert exponential_smoothing([10, 20], alpha=0.5) == [10.0, 15.0]

    def test_linear_trend_up(self):
        trend = linear_trend([1, 2, 3, 4])

        assert trend['slope'] == pytest.approx(1.0)
        assert trend['intercept'] == pytest.approx(1.0)
        assert trend['direction'] == 'up'

    def test_linear_trend_down(self):
        assert linear_trend([9, 6, 3])['direction'] == 'down'

    def test_linear_trend_single_point_is_flat(self):
        assert linear_trend([5]) == {"slope": 0.0, "intercept": 5.0, "direction": "flat"}

    def test_detect_anomalies_flags_spike(self):
        values = [10.0] * 20 + [100.0]

        anomalies = detect_anomalies(values, threshold=2.5)

        assert len(anomalies) == 1
        assert anomalies[0]['index'] == 20
        assert anomalies[0]['value'] == 100.0
        assert anomalies[0]['z_score'] > 2.5

    def test_detect_anomalies_constant_series(self):
        assert detect_anomalies([5, 5, 5, 5]) == []

    def test_forecast_empty_history(self):
        assert forecast([], periods=3) == [0.0, 0.0, 0.0]

    def test_forecast_flat_series(self):
        assert forecast([10, 10, 10], periods=3) == [10.0, 10.0, 10.0]

    def test_forecast_never_negative(self):
        assert all(value >= 0 for value in forecast([30, 20, 10, 0], periods=5))


class TestReorderRecommendation:

    def test_steady_demand(self):
        rec = reorder_recommendation([10] * 30, lead_time_days=7, unit_cost=20, ordering_cost=50)

        assert rec.average_daily_demand == 10.0
        assert rec.demand_std == 0.0
        assert rec.safety_stock == 0
        assert rec.reorder_point == 70
        assert rec.annual_demand == 3650.0
        # sqrt(2 * 3650 * 50 / (0.25 * 20)) = 270.2
        assert rec.economic_order_quantity == 271

    def test_variable_demand_adds_safety_stock(self):
        rec = reorder_recommendation([0, 20] * 15, lead_time_days=4, unit_cost=10)

        # std = 10 -> ceil(1.65 * 2 * 10)
        assert rec.safety_stock == 33
        assert rec.reorder_point == 10 * 4 + 33

    def test_no_history(self):
        rec = reorder_recommendation([], unit_cost=10)

        assert rec.reorder_point == 0
        assert rec.economic_order_quantity == 0

    def test_no_unit_cost_means_no_eoq(self):
        assert reorder_recommendation([5] * 10, unit_cost=0).economic_order_quantity == 0


class TestCustomerScoring:

    def _customer(self, customer_id, orders, revenue, days_ago, created_days_ago=365):
        return {
            'id': customer_id,
            'name': f'Customer {customer_id}',
            'email': f'c{customer_id}@example.com',
            'segment': 'regular',
            'total_orders': orders,
            'total_revenue': revenue,
            'created_at': NOW - timedelta(days=created_days_ago),
            'last_order_at': NOW - timedelta(days=days_ago) if days_ago is not None else None,
        }

    def test_rfm_ranks_best_customer_highest(self):
        customers = [
            self._customer(1, 20, 50000, 2),
            self._customer(2, 5, 8000, 30),
            self._customer(3, 3, 4000, 60),
            self._customer(4, 2, 1500, 120),
            self._customer(5, 1, 500, 300),
        ]

        scores = {s.customer_id: s for s in rfm_scores(customers, now=NOW)}

        assert scores[1].rfm_score == '555'
        assert scores[1].segment == 'champions'
        assert scores[5].rfm_score == '111'
        assert scores[5].segment == 'lost'
        assert scores[1].recency_days == 2

    def test_rfm_customer_without_orders_is_inactive(self):
        customers = [self._customer(1, 4, 4000, 10), self._customer(2, 0, 0, None)]

        scores = {s.customer_id: s for s in rfm_scores(customers, now=NOW)}

        assert scores[2].segment == 'inactive'
        assert scores[2].rfm_score == '111'
        assert scores[2].recency_days is None

    def test_rfm_empty(self):
        assert rfm_scores([]) == []

    @pytest.mark.parametrize("orders,days_ago,created_days_ago,expected", [
        (5, 120, 365, 'high'),
        (5, 60, 365, 'medium'),
        (1, 35, 365, 'medium'),
        (3, 10, 365, 'low'),
        (0, None, 90, 'high'),
        (0, None, 5, 'medium'),
    ])
    def test_churn_risk_levels(self, orders, days_ago, created_days_ago, expected):
        customer = self._customer(1, orders, 1000, days_ago, created_days_ago)

        risk = churn_risk(customer, now=NOW)

        assert risk['risk_level'] == expected
        if expected != 'low':
            assert risk['reasons']

    def test_churn_risk_naive_datetime_treated_as_utc(self):
        customer = self._customer(1, 3, 1000, None)
        customer['last_order_at'] = datetime(2025, 5, 22)

        assert churn_risk(customer, now=NOW)['days_since_last_order'] == 10


@patch('app.services.insights_service.CustomerRepository')
@patch('app.services.insights_service.OrderRepository')
@patch('app.services.insights_service.ProductRepository')
class TestInsightsService:
    """Test InsightsService against mocked repositories"""

    def test_product_reorder_recommends_quantity(self, mock_products, mock_orders, mock_customers):
        # Arrange
        mock_products.return_value.find_by_id.return_value = Product(
            id=7, sku='TSHIRT-BLK-M', name='Shirt', category='Apparel',
            price=Decimal('499'), cost=Decimal('250'), stock=40
        )
        mock_products.return_value.get_daily_demand.return_value = [
            {'day': date(2025, 3, d), 'units': 10} for d in range(1, 31)
        ]

        # Act
        result = InsightsService().product_reorder(7, 1)

        # Assert
        assert result['reorder_point'] == 70
        assert result['needs_reorder'] is True
        # EOQ = ceil(sqrt(2 * 3650 * 50 / 62.5)) = 77 > shortage of 30
        assert result['suggested_order_quantity'] == 77
        assert result['days_of_coverage'] == 4.0
        assert result['days_analyzed'] == 30

    def test_product_reorder_unknown_product(self, mock_products, mock_orders, mock_customers):
        mock_products.return_value.find_by_id.return_value = None

        with pytest.raises(NotFound):
            InsightsService().product_reorder(99, 1)

    def test_revenue_trend_shapes_series(self, mock_products, mock_orders, mock_customers):
        mock_orders.return_value.find_daily_revenue.return_value = [
            {'day': date(2025, 3, d), 'order_count': 1, 'revenue': 100.0 * d} for d in range(1, 8)
        ]

        result = InsightsService().revenue_trend(1, days=7)

        assert result['days'] == 7
        assert result['total_revenue'] == 2800.0
        assert len(result['series']) == 7
        assert result['series'][0]['smoothed'] == 100.0
        assert result['trend']['direction'] == 'up'
        assert len(result['forecast']) == 7
        mock_orders.return_value.find_daily_revenue.assert_called_once_with(1, days=7)

    def test_customer_churn_filters_and_summarises(self, mock_products, mock_orders, mock_customers):
        recent = datetime.now(timezone.utc) - timedelta(days=5)
        stale = datetime.now(timezone.utc) - timedelta(days=200)
        mock_customers.return_value.find_order_summaries.return_value = [
            {'id': 1, 'name': 'A', 'email': 'a@x.com', 'total_orders': 4,
             'total_revenue': 100.0, 'created_at': stale, 'last_order_at': recent},
            {'id': 2, 'name': 'B', 'email': 'b@x.com', 'total_orders': 2,
             'total_revenue': 50.0, 'created_at': stale, 'last_order_at': stale},
        ]

        result = InsightsService().customer_churn(1, risk_level='high')

        assert result['summary'] == {'high': 1, 'medium': 0, 'low': 1}
        assert [c['customer_id'] for c in result['customers']] == [2]

    def test_customer_rfm_counts_segments(self, mock_products, mock_orders, mock_customers):
        mock_customers.return_value.find_order_summaries.return_value = [
            {'id': 1, 'name': 'A', 'email': 'a@x.com', 'total_orders': 0,
             'total_revenue': 0.0, 'created_at': None, 'last_order_at': None},
        ]

        result = InsightsService().customer_rfm(1)

        assert result['segments'] == {'inactive': 1}
        assert result['customers'][0]['customer_id'] == 1
