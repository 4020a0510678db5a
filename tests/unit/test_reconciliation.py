"""
Unit Tests - Sales Reconciliation
"""
from datetime import date

import pytest
import polars as pl

from warehouse.transformation.reconciliation import reconcile_sales, sanitize_date_key


def _line(quantity, price, sales, order_dt=20220105):
    return pl.DataFrame(
        {
            "sls_ord_num": ["SO1"],
            "sls_order_dt": [order_dt],
            "sls_ship_dt": [20220112],
            "sls_due_dt": [20220117],
            "sls_sales": [sales],
            "sls_quantity": [quantity],
            "sls_price": [price],
        },
        schema={
            "sls_ord_num": pl.Utf8,
            "sls_order_dt": pl.Int64,
            "sls_ship_dt": pl.Int64,
            "sls_due_dt": pl.Int64,
            "sls_sales": pl.Float64,
            "sls_quantity": pl.Int64,
            "sls_price": pl.Float64,
        },
    )


class TestSanitizeDateKey:
    """Tests for integer date decoding"""

    def test_valid_and_invalid_keys(self):
        df = pl.DataFrame({"d": [20220105, 0, -20220105, 2022015, 202201050, 20220230, None]})

        result = df.select(sanitize_date_key("d"))

        assert result["d"].to_list() == [date(2022, 1, 5), None, None, None, None, None, None]


class TestReconcileSales:
    """Tests for reconcile_sales"""

    @pytest.mark.parametrize(
        "quantity,price,sales,expected_price,expected_amount",
        [
            # Consistent line is untouched
            (3, 10.0, 30.0, 10.0, 30.0),
            # Zero price recomputed from amount, amount kept
            (3, 0.0, 30.0, 10.0, 30.0),
            # Negative price: amount uses |price|
            (2, -25.0, 40.0, 25.0, 50.0),
            # Missing amount recomputed from price
            (2, 12.5, None, 12.5, 25.0),
            # Amount disagreeing with price is recomputed
            (4, 5.0, 21.0, 5.0, 20.0),
            # Non-positive amount recomputed
            (1, 9.0, -9.0, 9.0, 9.0),
            # Null price, positive amount
            (4, None, 20.0, 5.0, 20.0),
        ],
    )
    def test_amount_and_price(self, quantity, price, sales, expected_price, expected_amount):
        result, _ = reconcile_sales(_line(quantity, price, sales))

        assert result["unit_price"][0] == pytest.approx(expected_price)
        assert result["line_amount"][0] == pytest.approx(expected_amount)

    @pytest.mark.parametrize(
        "quantity,price,sales,expected_amount",
        [
            # Zero price with no usable amount recomputes to zero
            (2, 0.0, None, 0.0),
            (3, 0.0, -30.0, 0.0),
            (3, 0.0, 0.0, 0.0),
            # Missing quantity keeps a positive raw amount
            (None, 10.0, 30.0, 30.0),
            # Nothing to compute from
            (None, 10.0, None, None),
            (2, None, None, None),
        ],
    )
    def test_amount_edge_cases(self, quantity, price, sales, expected_amount):
        result, _ = reconcile_sales(_line(quantity, price, sales))

        if expected_amount is None:
            assert result["line_amount"][0] is None
        else:
            assert result["line_amount"][0] == pytest.approx(expected_amount)

    def test_zero_quantity_leaves_price_undefined(self):
        result, stats = reconcile_sales(_line(0, None, 30.0))

        assert result["unit_price"][0] is None
        assert stats.prices_undefined == 1

    def test_invariant_holds_for_positive_quantity(self, raw_sales):
        result, _ = reconcile_sales(raw_sales)

        checked = result.filter(
            (pl.col("quantity") > 0)
            & pl.col("unit_price").is_not_null()
            & pl.col("line_amount").is_not_null()
        )
        assert checked.height > 0
        for row in checked.iter_rows(named=True):
            assert row["line_amount"] == pytest.approx(row["quantity"] * row["unit_price"])

    def test_raw_columns_replaced(self):
        result, _ = reconcile_sales(_line(1, 1.0, 1.0))

        assert result.columns == [
            "sls_ord_num", "order_date", "ship_date", "due_date",
            "line_amount", "unit_price", "quantity",
        ]
        assert result["ship_date"][0] == date(2022, 1, 12)
        assert result.schema["quantity"] == pl.Int64

    def test_stats(self, raw_sales):
        df = raw_sales.filter(pl.col("sls_ord_num").is_not_null())

        _, stats = reconcile_sales(df)

        assert stats.total_rows == 5
        assert stats.amounts_recomputed == 1
        assert stats.prices_recomputed == 3
        assert stats.prices_undefined == 1
        assert stats.invalid_dates == 3

    def test_deterministic(self, raw_sales):
        first, _ = reconcile_sales(raw_sales)
        second, _ = reconcile_sales(raw_sales)

        assert first.equals(second)
