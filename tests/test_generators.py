"""Tests for synthetic input generators."""

from decimal import Decimal

from loan_ledger.generators.financial import (
    BorrowerGenerator,
    BorrowerProfile,
    LoanRequestGenerator,
)


class TestBorrowerGenerator:
    """Tests for BorrowerGenerator."""

    def test_generate(self, seed: int) -> None:
        profile = BorrowerGenerator(seed=seed).generate()

        assert isinstance(profile, BorrowerProfile)
        assert profile.name
        assert profile.phone

    def test_reproducible(self, seed: int) -> None:
        first = list(BorrowerGenerator(seed=seed).generate_batch(10))
        second = list(BorrowerGenerator(seed=seed).generate_batch(10))

        assert first == second

    def test_some_borrowers_have_no_email(self, seed: int) -> None:
        profiles = list(BorrowerGenerator(seed=seed).generate_batch(200))

        without = sum(1 for p in profiles if p.email is None)
        assert 0 < without < 200
        assert all("@" in p.email for p in profiles if p.email is not None)


class TestLoanRequestGenerator:
    """Tests for LoanRequestGenerator."""

    def test_requests_within_bounds(self, seed: int) -> None:
        gen = LoanRequestGenerator(seed=seed)
        low, high = gen.PRINCIPAL_RANGE

        for _ in range(100):
            request = gen.generate()
            assert Decimal(low) <= request.principal <= Decimal(high)
            assert request.principal % gen.PRINCIPAL_STEP == 0
            assert request.term_days in gen.TERMS
            assert request.interest_percent in gen.INTEREST_RATES

    def test_reproducible(self, seed: int) -> None:
        first, second = LoanRequestGenerator(seed=seed), LoanRequestGenerator(seed=seed)

        assert [first.generate() for _ in range(10)] == [second.generate() for _ in range(10)]
