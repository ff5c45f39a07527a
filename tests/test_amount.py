"""
Test suite for tagged amount module

Tests mint, split, merge and the conservation, overflow and denomination
separation rules that every amount must obey.
"""

import copy

import pytest

from tagged_ledger.amount import (
    TaggedAmount, mint, zero, split, merge, value, withdraw_all, destroy_zero
)
from tagged_ledger.denomination import Denomination, MAX_AMOUNT
from tagged_ledger.errors import (
    AmountConsumed, DenominationMismatch, InsufficientValue, InvalidAmount,
    InvalidOperation, LedgerError, NonZeroAmount, ValueOverflowError
)


class TestMint:
    """Test amount construction"""

    def test_mint_creates_amount(self):
        """Test mint produces an amount of the requested denomination"""
        amount = mint(Denomination.USD, 1000)
        assert value(amount) == 1000
        assert amount.denomination == Denomination.USD
        assert not amount.consumed

    def test_zero(self):
        """Test zero() creates an empty amount"""
        amount = zero(Denomination.EUR)
        assert amount.is_zero()
        assert amount.denomination == Denomination.EUR

    def test_mint_maximum(self):
        """Test the largest representable quantity is accepted"""
        assert value(mint(Denomination.USD, MAX_AMOUNT)) == 2 ** 64 - 1

    @pytest.mark.parametrize("bad", [-1, MAX_AMOUNT + 1, 1.5, "10", True, None])
    def test_mint_rejects_invalid_quantity(self, bad):
        """Test non-integer, negative and out-of-range quantities fail"""
        with pytest.raises(InvalidAmount):
            mint(Denomination.USD, bad)

    def test_mint_rejects_unknown_denomination(self):
        """Test denomination must be a Denomination tag"""
        with pytest.raises(InvalidOperation):
            mint("USD", 10)

    def test_amount_cannot_be_copied(self):
        """Test amounts refuse implicit duplication"""
        amount = mint(Denomination.USD, 10)
        with pytest.raises(TypeError):
            copy.copy(amount)
        with pytest.raises(TypeError):
            copy.deepcopy(amount)


class TestSplit:
    """Test splitting value out of an amount"""

    def test_split_moves_quantity(self):
        """Test split reduces the source and returns the split-off part"""
        amount = mint(Denomination.USD, 1000)
        piece = split(amount, 250)

        assert value(amount) == 750
        assert value(piece) == 250
        assert piece.denomination == Denomination.USD

    def test_split_everything(self):
        """Test splitting the full quantity leaves zero"""
        amount = mint(Denomination.USD, 40)
        piece = split(amount, 40)
        assert amount.is_zero()
        assert value(piece) == 40

    def test_split_zero(self):
        """Test splitting zero produces an empty amount"""
        amount = mint(Denomination.USD, 40)
        piece = split(amount, 0)
        assert value(amount) == 40
        assert piece.is_zero()

    def test_split_insufficient(self):
        """Test splitting more than held fails without mutation"""
        amount = mint(Denomination.USD, 100)
        with pytest.raises(InsufficientValue):
            split(amount, 101)
        assert value(amount) == 100

    def test_split_negative(self):
        """Test negative quantities are rejected"""
        amount = mint(Denomination.USD, 100)
        with pytest.raises(InvalidAmount):
            split(amount, -5)
        assert value(amount) == 100

    def test_withdraw_all(self):
        """Test withdraw_all empties the source"""
        amount = mint(Denomination.GBP, 77)
        piece = withdraw_all(amount)
        assert amount.is_zero()
        assert value(piece) == 77


class TestMerge:
    """Test merging amounts"""

    def test_merge_adds_and_consumes(self):
        """Test merge adds quantity and consumes the merged amount"""
        amount = mint(Denomination.USD, 100)
        other = mint(Denomination.USD, 50)
        merge(amount, other)

        assert value(amount) == 150
        assert other.consumed
        with pytest.raises(AmountConsumed):
            value(other)

    def test_consumed_amount_is_inert(self):
        """Test a consumed amount cannot be merged or split again"""
        amount = mint(Denomination.USD, 100)
        other = mint(Denomination.USD, 50)
        merge(amount, other)

        with pytest.raises(AmountConsumed):
            merge(amount, other)
        with pytest.raises(AmountConsumed):
            split(other, 0)
        assert value(amount) == 150

    def test_merge_denomination_mismatch(self):
        """Test merging different denominations fails without mutation"""
        usd = mint(Denomination.USD, 100)
        eur = mint(Denomination.EUR, 100)

        with pytest.raises(DenominationMismatch, match="Cannot merge EUR and USD"):
            merge(usd, eur)

        assert value(usd) == 100
        assert value(eur) == 100
        assert not eur.consumed

    def test_denomination_mismatch_is_value_error(self):
        """Test mismatches can be caught as ValueError and LedgerError"""
        with pytest.raises(ValueError):
            merge(mint(Denomination.USD, 1), mint(Denomination.JPY, 1))
        with pytest.raises(LedgerError):
            merge(mint(Denomination.USD, 1), mint(Denomination.JPY, 1))

    def test_merge_overflow(self):
        """Test merge past the maximum fails without mutation"""
        amount = mint(Denomination.USD, MAX_AMOUNT)
        other = mint(Denomination.USD, 1)

        with pytest.raises(ValueOverflowError):
            merge(amount, other)
        with pytest.raises(OverflowError):
            merge(amount, other)

        assert value(amount) == MAX_AMOUNT
        assert value(other) == 1

    def test_merge_respects_narrow_limit(self):
        """Test amounts with a smaller unsigned width overflow sooner"""
        limit = 2 ** 8 - 1
        amount = mint(Denomination.USD, 200, limit=limit)
        with pytest.raises(ValueOverflowError):
            merge(amount, mint(Denomination.USD, 56, limit=limit))
        merge(amount, mint(Denomination.USD, 55, limit=limit))
        assert value(amount) == 255

    def test_merge_into_self(self):
        """Test an amount cannot absorb itself"""
        amount = mint(Denomination.USD, 10)
        with pytest.raises(InvalidOperation):
            merge(amount, amount)
        assert value(amount) == 10

    def test_merge_non_amount(self):
        """Test merging a plain number is rejected"""
        amount = mint(Denomination.USD, 10)
        with pytest.raises(InvalidOperation):
            merge(amount, 5)

    def test_split_then_merge_conserves_value(self):
        """Test split followed by merge leaves the total unchanged"""
        a = mint(Denomination.USD, 1000)
        b = mint(Denomination.USD, 500)
        total = value(a) + value(b)

        for quantity in (1, 99, 400, 0):
            merge(b, split(a, quantity))
            assert value(a) + value(b) == total


class TestDestroyZero:
    """Test retiring empty amounts"""

    def test_destroy_zero(self):
        """Test an empty amount can be retired"""
        amount = zero(Denomination.USD)
        destroy_zero(amount)
        assert amount.consumed

    def test_destroy_non_zero(self):
        """Test an amount holding value cannot be retired"""
        amount = mint(Denomination.USD, 1)
        with pytest.raises(NonZeroAmount):
            destroy_zero(amount)
        assert not amount.consumed


class TestComparison:
    """Test amount comparison and formatting"""

    def test_same_denomination_comparison(self):
        """Test ordering within a denomination"""
        small = mint(Denomination.USD, 10)
        large = mint(Denomination.USD, 20)
        assert small < large
        assert large > small
        assert small <= mint(Denomination.USD, 10)
        assert large >= small

    def test_cross_denomination_comparison(self):
        """Test ordering across denominations is rejected"""
        with pytest.raises(DenominationMismatch, match="Cannot compare"):
            mint(Denomination.USD, 10) < mint(Denomination.EUR, 20)

    def test_equality(self):
        """Test equality is defined only within one denomination"""
        assert mint(Denomination.USD, 10) == mint(Denomination.USD, 10)
        assert mint(Denomination.USD, 10) != mint(Denomination.USD, 11)
        assert mint(Denomination.USD, 10) != 10

        with pytest.raises(DenominationMismatch):
            mint(Denomination.USD, 10) == mint(Denomination.EUR, 10)
        with pytest.raises(DenominationMismatch):
            mint(Denomination.USD, 10) != mint(Denomination.EUR, 10)

    def test_denomination_is_fixed(self):
        """Test an amount cannot be relabelled to another denomination"""
        amount = mint(Denomination.USD, 10)
        with pytest.raises(InvalidOperation):
            amount.denomination = Denomination.EUR
        assert amount.denomination == Denomination.USD

        with pytest.raises(DenominationMismatch):
            mint(Denomination.EUR, 5).merge(amount)
        assert value(amount) == 10

    def test_to_string(self):
        """Test display formatting uses denomination precision"""
        assert mint(Denomination.USD, 123456).to_string() == "USD 1,234.56"
        assert mint(Denomination.JPY, 1234).to_string() == "JPY 1,234"
        assert mint(Denomination.USD, 5).to_string() == "USD 0.05"
