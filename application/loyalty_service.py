"""Loyalty Ledger - points, tiers and the append-only transaction history"""
import logging
from collections import Counter
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from domain.entities import LoyaltyAccount, LoyaltyTransaction
from domain.enums import LoyaltyTier, LoyaltyTransactionType
from domain.exceptions import (
    AlreadyEnrolled, DuplicateLoyaltyNumber, InsufficientLoyaltyPoints, LoyaltyAccountNotFound,
    LoyaltyAccountNotOwned, RedemptionBelowMinimum,
)
from domain.repositories import (
    GuestRepository, LoyaltyAccountRepository, LoyaltyTransactionRepository, UnitOfWork,
)
from domain.value_objects import LoyaltyConfiguration, to_money

logger = logging.getLogger(__name__)


class LoyaltyStats(BaseModel):
    total_accounts: int
    active_accounts: int
    points_outstanding: int
    lifetime_points_issued: int
    accounts_by_tier: Dict[LoyaltyTier, int]


def add_months(day: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months"""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    for candidate in (day.day, 30, 29, 28):
        try:
            return date(year, month, min(day.day, candidate))
        except ValueError:
            continue
    raise ValueError(f"Cannot add {months} months to {day}")


class LoyaltyService:
    """Service for loyalty program use cases"""

    def __init__(
        self,
        account_repo: LoyaltyAccountRepository,
        transaction_repo: LoyaltyTransactionRepository,
        guest_repo: GuestRepository,
        uow: UnitOfWork,
        config: LoyaltyConfiguration,
        loyalty_number_factory: Callable[[], str] = LoyaltyAccount.generate_loyalty_number,
        max_number_attempts: int = 10
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.guest_repo = guest_repo
        self.uow = uow
        self.config = config
        self.loyalty_number_factory = loyalty_number_factory
        self.max_number_attempts = max_number_attempts

    # ==================== LOOK-UPS ====================
    def get_account(self, loyalty_number: str) -> Optional[LoyaltyAccount]:
        return self.account_repo.find_by_loyalty_number(loyalty_number)

    def get_account_by_guest(self, guest_id: UUID) -> Optional[LoyaltyAccount]:
        return self.account_repo.find_by_guest_id(guest_id)

    def get_history(self, loyalty_number: str) -> List[LoyaltyTransaction]:
        """Transactions of an account, oldest first"""
        account = self._require(loyalty_number)
        return self.transaction_repo.find_by_account(account.account_id)

    def get_reservation_transactions(self, reservation_id: UUID) -> List[LoyaltyTransaction]:
        return self.transaction_repo.find_by_reservation(reservation_id)

    def _require(self, loyalty_number: str) -> LoyaltyAccount:
        account = self.account_repo.find_by_loyalty_number(loyalty_number)
        if account is None:
            raise LoyaltyAccountNotFound(loyalty_number)
        return account

    def require_owned_account(self, loyalty_number: str, guest_id: Optional[UUID]) -> LoyaltyAccount:
        """Account behind ``loyalty_number``, which must belong to ``guest_id``"""
        account = self._require(loyalty_number)
        if account.guest_id != guest_id:
            raise LoyaltyAccountNotOwned(loyalty_number, guest_id)
        return account

    # ==================== ENROLLMENT ====================
    def enroll(self, guest_id: UUID) -> Optional[LoyaltyAccount]:
        """Open an account for a known guest and credit the welcome bonus"""
        with self.uow.atomic():
            if self.guest_repo.find_by_id(guest_id) is None:
                return None
            if self.account_repo.find_by_guest_id(guest_id) is not None:
                raise AlreadyEnrolled(f"Guest {guest_id} is already enrolled")

            account = self._save_new_account(guest_id)
            logger.info("Guest %s enrolled as %s", guest_id, account.loyalty_number)

            if self.config.welcome_bonus > 0:
                self.award_bonus(account.loyalty_number, self.config.welcome_bonus, "Welcome bonus")
            return account

    def _save_new_account(self, guest_id: UUID) -> LoyaltyAccount:
        for attempt in range(1, self.max_number_attempts + 1):
            account = LoyaltyAccount(loyalty_number=self.loyalty_number_factory(), guest_id=guest_id)
            try:
                return self.account_repo.save(account)
            except DuplicateLoyaltyNumber as e:
                logger.warning("Loyalty number collision on attempt %d: %s", attempt, e.loyalty_number)
        raise DuplicateLoyaltyNumber(account.loyalty_number)

    # ==================== LEDGER OPERATIONS ====================
    def _record(
        self,
        account: LoyaltyAccount,
        transaction_type: LoyaltyTransactionType,
        points: int,
        reservation_id: Optional[UUID],
        description: str
    ) -> LoyaltyTransaction:
        self.account_repo.save(account)
        transaction = self.transaction_repo.append(LoyaltyTransaction(
            account_id=account.account_id,
            transaction_type=transaction_type,
            points=points,
            balance_after=account.points_balance,
            reservation_id=reservation_id,
            description=description,
        ))
        logger.info(
            "Loyalty %s %s %+d points (balance %d, tier %s)",
            account.loyalty_number, transaction_type.value, points,
            account.points_balance, account.tier.value,
        )
        return transaction

    def earn_points(
        self,
        loyalty_number: str,
        payment_amount: Decimal,
        reservation_id: Optional[UUID] = None
    ) -> Optional[LoyaltyTransaction]:
        """Earn points for a payment at the tier held before the payment"""
        with self.uow.atomic():
            account = self._require(loyalty_number)
            points = account.points_for_payment(to_money(payment_amount), self.config.earning_rate)
            if points <= 0:
                return None
            account.credit(points)
            return self._record(
                account, LoyaltyTransactionType.EARN, points, reservation_id,
                f"Earned on payment of {to_money(payment_amount)}",
            )

    def quote_redemption(
        self,
        loyalty_number: str,
        requested_points: int,
        cap: Optional[int] = None
    ) -> Tuple[int, Decimal]:
        """Points that would be redeemed and their dollar value, without redeeming"""
        account = self._require(loyalty_number)
        points = account.resolve_redemption(
            requested_points,
            self.config.max_redemption_points if cap is None else cap,
            self.config.min_redemption_points,
        )
        return points, self.redemption_value(points)

    def redeem_points(
        self,
        loyalty_number: str,
        requested_points: int,
        reservation_id: Optional[UUID] = None,
        cap: Optional[int] = None
    ) -> LoyaltyTransaction:
        """Redeem min(requested, balance, cap) points"""
        with self.uow.atomic():
            account = self._require(loyalty_number)
            points = account.resolve_redemption(
                requested_points,
                self.config.max_redemption_points if cap is None else cap,
                self.config.min_redemption_points,
            )
            account.debit(points)
            return self._record(
                account, LoyaltyTransactionType.REDEEM, -points, reservation_id,
                f"Redeemed for {self.redemption_value(points)}",
            )

    def points_for_amount(self, amount: Decimal) -> int:
        """Points worth at least ``amount``, rounded up to a whole point"""
        raw = to_money(amount) / self.config.redemption_value
        return int(raw.to_integral_value(rounding=ROUND_CEILING))

    def pay_with_points(
        self,
        loyalty_number: str,
        amount: Decimal,
        reservation_id: Optional[UUID] = None
    ) -> LoyaltyTransaction:
        """Debit the points covering a payment; the per-reservation cap does not apply"""
        amount = to_money(amount)
        points = self.points_for_amount(amount)
        with self.uow.atomic():
            account = self._require(loyalty_number)
            if points < self.config.min_redemption_points:
                raise RedemptionBelowMinimum(points, self.config.min_redemption_points)
            if not account.has_enough_points(points):
                raise InsufficientLoyaltyPoints(
                    f"Balance of {account.points_balance} points cannot cover a payment of "
                    f"{amount} ({points} points)"
                )
            account.debit(points)
            return self._record(
                account, LoyaltyTransactionType.REDEEM, -points, reservation_id,
                f"Paid {amount} with points",
            )

    def award_bonus(self, loyalty_number: str, points: int, description: str = "Bonus") -> LoyaltyTransaction:
        with self.uow.atomic():
            account = self._require(loyalty_number)
            account.credit(points)
            return self._record(account, LoyaltyTransactionType.BONUS, points, None, description)

    def refund_points(
        self,
        loyalty_number: str,
        points: int,
        reservation_id: Optional[UUID] = None,
        description: str = "Refund of redeemed points"
    ) -> LoyaltyTransaction:
        """Return redeemed points to the balance; lifetime points are unchanged"""
        with self.uow.atomic():
            account = self._require(loyalty_number)
            account.credit(points, counts_toward_lifetime=False)
            return self._record(account, LoyaltyTransactionType.REFUND, points, reservation_id, description)

    def adjust_points(self, loyalty_number: str, delta: int, reason: str) -> LoyaltyTransaction:
        """Manual correction of the balance by an admin"""
        with self.uow.atomic():
            account = self._require(loyalty_number)
            if delta >= 0:
                account.credit(delta, counts_toward_lifetime=False)
            else:
                account.debit(-delta)
            return self._record(account, LoyaltyTransactionType.ADJUSTMENT, delta, None, reason)

    def expire_inactive_points(self, as_of: Optional[date] = None) -> List[LoyaltyTransaction]:
        """Expire the balance of accounts idle for the configured number of months"""
        months = self.config.points_expiration_months
        if months <= 0:
            return []

        as_of = as_of or date.today()
        expired: List[LoyaltyTransaction] = []
        with self.uow.atomic():
            for account in self.account_repo.find_all():
                last_activity = account.last_activity_date or account.enrollment_date
                if account.points_balance <= 0 or add_months(last_activity, months) > as_of:
                    continue
                points = account.points_balance
                account.debit(points)
                expired.append(self._record(
                    account, LoyaltyTransactionType.EXPIRE, -points, None,
                    f"Expired after {months} months of inactivity",
                ))
        return expired

    # ==================== QUERIES ====================
    def redemption_value(self, points: int) -> Decimal:
        return to_money(Decimal(points) * self.config.redemption_value)

    def stats(self) -> LoyaltyStats:
        accounts = self.account_repo.find_all()
        tiers = Counter(account.tier for account in accounts)
        return LoyaltyStats(
            total_accounts=len(accounts),
            active_accounts=sum(1 for account in accounts if account.active),
            points_outstanding=sum(account.points_balance for account in accounts),
            lifetime_points_issued=sum(account.lifetime_points for account in accounts),
            accounts_by_tier={tier: tiers.get(tier, 0) for tier in LoyaltyTier},
        )
