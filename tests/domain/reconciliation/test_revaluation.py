from __future__ import annotations

import pytest

from tests.helpers.reconciliation import (
    FakeValuationProvider,
    make_line_item,
    make_quote,
    make_valuation,
)
from valuation_recon.domain.errors import RevaluationError
from valuation_recon.domain.model import RevaluationSource
from valuation_recon.domain.ports import AccessoryQuote, ProviderFailure, ProviderFailureKind
from valuation_recon.domain.reconciliation import (
    RevaluationOrchestrator,
    price_locally,
    price_quote,
)


def test_provider_path_skips_accessories_included_in_base() -> None:
    quote = make_quote(
        AccessoryQuote(code="A", name="Sunroof", trade_in=300, retail=400, loan=250),
        AccessoryQuote(code="B", name="Alloys", trade_in=999, retail=999, included_in_base=True),
    )

    values = price_quote(quote, {"A", "B"})

    assert values.options_trade_in == 300
    assert values.clean_trade_in == 11_000 - 300 + 300
    assert values.average_trade_in == 10_000 - 300 + 300
    assert values.clean_retail == 13_400
    assert values.loan_value == 10_250
    assert values.base_clean_trade_in == 11_000


def test_provider_path_ignores_codes_it_cannot_price() -> None:
    quote = make_quote(AccessoryQuote(code="A", name="Sunroof", trade_in=300))

    values = price_quote(quote, {"A", "UNKNOWN"})

    assert values.options_trade_in == 300


def test_local_pricing_skips_factory_installed_items() -> None:
    valuation = make_valuation(
        make_line_item("A", selected=True, trade=300, retail=400, loan=250),
        make_line_item("B", selected=True, trade=200, factory_installed=True),
        make_line_item("F", trade=100),
    )

    values = price_locally(valuation, {"A", "B"})

    assert values.clean_trade_in == 10_000 - 500 + 300
    # no average adjustment stored, so the clean adjustment stands in
    assert values.average_trade_in == 9_000 - 500 + 300
    assert values.clean_retail == 12_400
    assert values.loan_value == 9_750
    assert values.mileage_adjustment == -500


def test_local_pricing_without_line_items_is_a_hard_failure() -> None:
    with pytest.raises(RevaluationError):
        price_locally(make_valuation(), set())


def test_revaluate_uses_provider_when_it_answers() -> None:
    valuation = make_valuation(make_line_item("A", selected=True, trade=300))
    provider = FakeValuationProvider(
        make_quote(AccessoryQuote(code="A", name="Sunroof", trade_in=350))
    )

    result = RevaluationOrchestrator(provider=provider).revaluate(valuation, {"A"})

    assert result.success
    assert result.source is RevaluationSource.PROVIDER
    assert result.values is not None
    assert result.values.options_trade_in == 350
    assert result.request_id == "req-1"
    [(identity, mileage, region)] = provider.calls
    assert identity.vin == valuation.vehicle_id
    assert (mileage, region) == (42_000, 1)


@pytest.mark.parametrize(
    "kind",
    [
        ProviderFailureKind.TIMEOUT,
        ProviderFailureKind.HTTP_ERROR,
        ProviderFailureKind.MALFORMED_PAYLOAD,
    ],
)
def test_provider_failures_fall_back_to_local_data(kind: ProviderFailureKind) -> None:
    valuation = make_valuation(make_line_item("A", selected=True, trade=300))
    provider = FakeValuationProvider(ProviderFailure(kind, "boom"))

    result = RevaluationOrchestrator(provider=provider).revaluate(valuation, {"A"})

    assert result.success
    assert result.source is RevaluationSource.FALLBACK
    assert result.provider_failure == ProviderFailure(kind, "boom")
    assert result.values is not None
    assert result.values.clean_trade_in == 9_800


def test_missing_identity_skips_the_provider() -> None:
    valuation = make_valuation(make_line_item("A", trade=300), vehicle_id="  ")
    provider = FakeValuationProvider(make_quote())

    result = RevaluationOrchestrator(provider=provider).revaluate(valuation, {"A"})

    assert provider.calls == []
    assert result.source is RevaluationSource.FALLBACK
    assert result.provider_failure is not None
    assert result.provider_failure.kind is ProviderFailureKind.MISSING_IDENTITY


def test_unconfigured_provider_falls_back() -> None:
    valuation = make_valuation(make_line_item("A", trade=300))

    result = RevaluationOrchestrator().revaluate(valuation, set())

    assert result.success
    assert result.provider_failure is not None
    assert result.provider_failure.kind is ProviderFailureKind.NOT_CONFIGURED
    assert result.values is not None
    assert result.values.clean_trade_in == 9_500


def test_fallback_without_line_items_reports_failure() -> None:
    result = RevaluationOrchestrator().fallback(make_valuation(), set())

    assert not result.success
    assert result.values is None
    assert result.error is not None
