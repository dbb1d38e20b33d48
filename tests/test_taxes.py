from __future__ import annotations

from decimal import Decimal
from itertools import product

import pytest

from sismog.models.contract import Contract
from sismog.services.taxes import DEFAULT_RATES, StatutoryRates, compute_taxes, configured_rates


def _contract(**overrides) -> Contract:
    fields = {"id": "c1", "valor_base_mensal": Decimal("0")}
    fields.update(overrides)
    return Contract(**fields)


class TestComputeTaxes:
    def test_reference_scenario(self):
        contract = _contract(
            retem_iss=True, aliquota_iss=Decimal("5"), retem_pis=True, retem_inss=True
        )
        t = compute_taxes(Decimal("10000"), contract)
        assert t.val_iss == Decimal("500.00")
        assert t.val_pis == Decimal("65.00")
        assert t.val_inss == Decimal("1100.00")
        assert t.val_cofins == t.val_csll == t.val_irpj == t.val_caucao == Decimal(0)
        assert t.total_deducoes == Decimal("1665.00")
        assert t.val_liquido_nota == Decimal("8335.00")
        assert t.val_liquido_recebimento == Decimal("8335.00")

    def test_iss_computed_but_not_deducted_without_flag(self):
        contract = _contract(retem_iss=False, aliquota_iss=Decimal("5"))
        t = compute_taxes(Decimal("1000"), contract)
        assert t.val_iss == Decimal("50.00")
        assert t.total_deducoes == Decimal(0)
        assert t.val_liquido_nota == Decimal("1000.00")

    def test_caucao_reduces_only_receivable(self):
        contract = _contract(retem_caucao=True, aliquota_caucao=Decimal("5"))
        t = compute_taxes(Decimal("2000"), contract)
        assert t.val_caucao == Decimal("100.00")
        assert t.val_liquido_nota == Decimal("2000.00")
        assert t.val_liquido_recebimento == Decimal("1900.00")

    def test_all_federal_withholdings(self):
        contract = _contract(
            retem_pis=True, retem_cofins=True, retem_csll=True, retem_irpj=True, retem_inss=True
        )
        t = compute_taxes(Decimal("1000"), contract)
        assert (t.val_pis, t.val_cofins, t.val_csll, t.val_irpj, t.val_inss) == (
            Decimal("6.50"),
            Decimal("30.00"),
            Decimal("10.00"),
            Decimal("15.00"),
            Decimal("110.00"),
        )
        assert t.total_deducoes == Decimal("171.50")

    def test_rounds_each_item_half_up(self):
        contract = _contract(retem_pis=True)
        # 1234.57 * 0.0065 = 8.024705 -> 8.02; 1.00 * 0.0065 = 0.0065 -> 0.01
        assert compute_taxes(Decimal("1234.57"), contract).val_pis == Decimal("8.02")
        assert compute_taxes(Decimal("1.00"), contract).val_pis == Decimal("0.01")

    @pytest.mark.parametrize("gross", [None, "", "abc", float("nan"), "Infinity"])
    def test_bad_gross_is_zero(self, gross):
        contract = _contract(retem_iss=True, aliquota_iss=Decimal("5"), retem_inss=True)
        t = compute_taxes(gross, contract)
        assert t.val_liquido_recebimento == Decimal(0)
        assert t.val_iss == Decimal(0)

    def test_sub_centavo_gross_truncated(self):
        t = compute_taxes(Decimal("0.005"), _contract())
        assert t.val_liquido_nota == Decimal("0.00")
        assert t.val_liquido_recebimento == Decimal("0.00")

    def test_row_columns(self):
        row = compute_taxes(Decimal("100"), _contract(retem_pis=True)).to_row()
        assert row["val_pis"] == "0.65"
        assert "total_deducoes" not in row
        assert set(row) == {
            "val_iss",
            "val_pis",
            "val_cofins",
            "val_csll",
            "val_irpj",
            "val_inss",
            "val_caucao",
            "val_liquido_nota",
            "val_liquido_recebimento",
        }


@pytest.mark.parametrize(
    "gross", ["0", "0.001", "0.005", "0.009", "0.01", "0.015", "999.995", "10000", "123456.78"]
)
@pytest.mark.parametrize("flags", list(product([False, True], repeat=3)))
def test_net_receivable_never_exceeds_net_invoice_or_gross(gross, flags):
    retem_iss, retem_federais, retem_caucao = flags
    contract = _contract(
        retem_iss=retem_iss,
        aliquota_iss=Decimal("5"),
        retem_pis=retem_federais,
        retem_cofins=retem_federais,
        retem_csll=retem_federais,
        retem_irpj=retem_federais,
        retem_inss=retem_federais,
        retem_caucao=retem_caucao,
        aliquota_caucao=Decimal("10"),
    )
    t = compute_taxes(Decimal(gross), contract)
    assert Decimal(0) <= t.total_deducoes
    assert t.val_liquido_recebimento <= t.val_liquido_nota <= Decimal(gross)


class TestRates:
    def test_defaults_are_statutory(self):
        assert DEFAULT_RATES == StatutoryRates(
            pis=Decimal("0.0065"),
            cofins=Decimal("0.03"),
            csll=Decimal("0.01"),
            irpj=Decimal("0.015"),
            inss=Decimal("0.11"),
        )

    def test_override(self):
        rates = DEFAULT_RATES.with_overrides({"inss": "0.035", "bogus": "1"})
        assert rates.inss == Decimal("0.035")
        assert rates.pis == DEFAULT_RATES.pis
        t = compute_taxes(Decimal("1000"), _contract(retem_inss=True), rates)
        assert t.val_inss == Decimal("35.00")

    def test_configured_rates_reads_settings(self, tmp_path):
        cfg = tmp_path / "config"
        cfg.mkdir()
        (cfg / "settings.yaml").write_text("aliquotas:\n  cofins: '0.02'\n")
        assert configured_rates().cofins == Decimal("0.02")

    def test_configured_rates_without_settings(self):
        assert configured_rates() is DEFAULT_RATES
