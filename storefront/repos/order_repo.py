# storefront/repos/order_repo.py
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment import PaymentModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def update_order_status(self, order_id: int, status: str) -> OrderModel | None:
        order = self.get_order(order_id)
        if order:
            order.status = status
            self.db.flush()
        return order

    def list_awaiting_payment(self, statuses: list[str], updated_before: datetime) -> list[OrderModel]:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.status.in_(statuses), OrderModel.updated_at < updated_before)
            .order_by(OrderModel.id)
        ).scalars().all()

    def list_paid_on_hold(self, on_hold_status: str, paid_status: str, updated_before: datetime) -> list[OrderModel]:
        """Orders parked in on_hold_status although one of their payments already went through."""
        return self.db.execute(
            select(OrderModel)
            .join(PaymentModel, PaymentModel.order_id == OrderModel.id)
            .where(
                OrderModel.status == on_hold_status,
                PaymentModel.status == paid_status,
                OrderModel.updated_at < updated_before,
            )
            .distinct()
            .order_by(OrderModel.id)
        ).scalars().all()

    # payments

    def create_payment(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment_by_ref(self, provider_ref_id: str, for_update: bool = False) -> PaymentModel | None:
        stmt = select(PaymentModel).where(PaymentModel.provider_ref_id == provider_ref_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def update_payment_status(self, provider_ref_id: str, status: str, **timestamps) -> PaymentModel | None:
        payment = self.get_payment_by_ref(provider_ref_id)
        if payment:
            payment.status = status
            for name, value in timestamps.items():
                setattr(payment, name, value)
            self.db.flush()
        return payment

    def latest_payment(self, order_id: int, status: str | None = None) -> PaymentModel | None:
        stmt = select(PaymentModel).where(PaymentModel.order_id == order_id)
        if status is not None:
            stmt = stmt.where(PaymentModel.status == status)
        return self.db.execute(
            stmt
            .order_by(PaymentModel.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
