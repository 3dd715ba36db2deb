"""Borrower profile generator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from loan_ledger.generators.base import BaseGenerator


@dataclass(frozen=True)
class BorrowerProfile:
    """Contact details used to register a borrower."""

    name: str
    email: str | None
    phone: str | None


class BorrowerGenerator(BaseGenerator):
    """Generate synthetic borrower contact details."""

    # Share of borrowers registered without an email (cash-only clients)
    NO_EMAIL_RATE = 0.25

    def generate(self) -> BorrowerProfile:
        """Generate a single borrower profile.

        Returns
        -------
        BorrowerProfile
            Generated profile.
        """
        return self._generate_one()

    def generate_batch(self, count: int) -> Iterator[BorrowerProfile]:
        """Generate multiple borrower profiles.

        Parameters
        ----------
        count : int
            Number of profiles to generate.

        Yields
        ------
        BorrowerProfile
            Generated profiles.
        """
        for _ in range(count):
            yield self._generate_one()

    def _generate_one(self) -> BorrowerProfile:
        name = self.fake.name()
        email = None
        if self.rng.random() >= self.NO_EMAIL_RATE:
            email = self.fake.email()
        return BorrowerProfile(name=name, email=email, phone=self.fake.phone_number())
