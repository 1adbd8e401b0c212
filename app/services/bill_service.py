import logging
from datetime import datetime, date
from typing import Callable, Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.permissions import BILL_PAYER_ROLES, FINANCE_DOCUMENT_ROLES, role_error
from app.core.responses import failure
from app.models.event import EntityType
from app.models.notification import NotificationType
from app.models.project import Project
from app.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from app.models.user import User
from app.models.vendor_bill import VendorBill, BillStatus, BILL_TRANSITIONS
from app.services.event_service import event_service
from app.services.notification_service import notification_service
from app.services.purchase_order_service import purchase_order_service

logger = logging.getLogger(__name__)

UNPAID_STATUSES = [BillStatus.DRAFT.value, BillStatus.RECEIVED.value]


class BillService:
    """Vendor bills: draft -> received -> paid, cancellable until paid."""

    def _query(self, db: Session, organization_id: int):
        return db.query(VendorBill).filter(
            VendorBill.organization_id == organization_id,
            VendorBill.deleted_at.is_(None)
        )

    def _check_role(self, user: User, allowed_roles: List[str]) -> Optional[Dict]:
        if user.role not in allowed_roles:
            return failure(role_error(user.role, allowed_roles), "forbidden")
        return None

    def _check_project(self, db: Session, project_id: Optional[int], organization_id: int) -> Optional[Dict]:
        if project_id is None:
            return None
        project = db.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None)
        ).first()
        if not project:
            return failure("Project not found or does not belong to organization", "validation")
        return None

    def _check_purchase_order(self, db: Session, purchase_order_id: Optional[int], organization_id: int) -> Optional[Dict]:
        if purchase_order_id is None:
            return None
        purchase_order = db.query(PurchaseOrder).filter(
            PurchaseOrder.id == purchase_order_id,
            PurchaseOrder.organization_id == organization_id,
            PurchaseOrder.deleted_at.is_(None)
        ).first()
        if not purchase_order:
            return failure("Purchase order not found or does not belong to organization", "validation")
        if purchase_order.status == PurchaseOrderStatus.CANCELLED.value:
            return failure("Cannot link a bill to a cancelled purchase order", "validation")
        return None

    def create_bill(self, db: Session, organization_id: int, user: User, data: Dict) -> Dict:
        error = self._check_role(user, FINANCE_DOCUMENT_ROLES) \
            or self._check_project(db, data.get("project_id"), organization_id) \
            or self._check_purchase_order(db, data.get("purchase_order_id"), organization_id)
        if error:
            return error

        try:
            bill = VendorBill(
                organization_id=organization_id,
                project_id=data.get("project_id"),
                purchase_order_id=data.get("purchase_order_id"),
                vendor_name=data.get("vendor_name"),
                bill_date=data.get("bill_date") or date.today(),
                amount=data["amount"],
                extra=data.get("metadata"),
                status=BillStatus.DRAFT.value
            )
            db.add(bill)
            db.flush()
            event_service.record(
                db, organization_id, EntityType.BILL.value, bill.id, "bill.created",
                {"amount": float(bill.amount), "actor_id": user.id}
            )
            db.commit()
            db.refresh(bill)
            logger.info(f"Vendor bill {bill.id} created by user {user.id}")
            return {"success": True, "bill": bill}
        except Exception as e:
            logger.error(f"Error creating vendor bill: {e}")
            db.rollback()
            return failure("Failed to create bill", "error")

    def get_bill(self, db: Session, bill_id: int, organization_id: int) -> Dict:
        bill = self._query(db, organization_id).filter(VendorBill.id == bill_id).first()
        if not bill:
            return failure("Bill not found", "not_found")
        return {"success": True, "bill": bill}

    def list_bills(
        self,
        db: Session,
        organization_id: int,
        status: Optional[str] = None,
        project_id: Optional[int] = None,
        purchase_order_id: Optional[int] = None,
        vendor_name: Optional[str] = None,
        unpaid_only: bool = False,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        query = self._query(db, organization_id)
        if status:
            query = query.filter(VendorBill.status == status)
        if unpaid_only:
            query = query.filter(VendorBill.status.in_(UNPAID_STATUSES))
        if project_id is not None:
            query = query.filter(VendorBill.project_id == project_id)
        if purchase_order_id is not None:
            query = query.filter(VendorBill.purchase_order_id == purchase_order_id)
        if vendor_name:
            query = query.filter(VendorBill.vendor_name.ilike(f"%{vendor_name}%"))

        total = query.count()
        bills = query.order_by(VendorBill.bill_date.desc(), VendorBill.id.desc()).offset(offset).limit(limit).all()
        return {"success": True, "bills": bills, "total": total}

    def update_bill(self, db: Session, bill_id: int, organization_id: int, user: User, data: Dict) -> Dict:
        error = self._check_role(user, FINANCE_DOCUMENT_ROLES)
        if error:
            return error

        result = self.get_bill(db, bill_id, organization_id)
        if not result["success"]:
            return result
        bill = result["bill"]

        if bill.status != BillStatus.DRAFT.value:
            return failure("Can only edit draft bills", "invalid_state")
        error = self._check_project(db, data.get("project_id"), organization_id) \
            or self._check_purchase_order(db, data.get("purchase_order_id"), organization_id)
        if error:
            return error

        if "metadata" in data:
            bill.extra = data.pop("metadata")
        for field, value in data.items():
            setattr(bill, field, value)
        event_service.record(
            db, organization_id, EntityType.BILL.value, bill.id, "bill.updated",
            {"actor_id": user.id}
        )
        db.commit()
        db.refresh(bill)
        return {"success": True, "bill": bill}

    def _transition(
        self,
        db: Session,
        bill_id: int,
        organization_id: int,
        user: User,
        target_status: str,
        allowed_roles: List[str],
        extra_values: Optional[Dict] = None,
        before_commit: Optional[Callable[[Session, VendorBill], None]] = None
    ) -> Dict:
        try:
            error = self._check_role(user, allowed_roles)
            if error:
                return error

            result = self.get_bill(db, bill_id, organization_id)
            if not result["success"]:
                return result
            bill = result["bill"]

            current_status = bill.status
            if target_status not in BILL_TRANSITIONS.get(current_status, []):
                return failure(f"Cannot transition from '{current_status}' to '{target_status}'", "invalid_state")

            values = {"status": target_status, "updated_at": datetime.utcnow()}
            values.update(extra_values or {})
            updated = self._query(db, organization_id).filter(
                VendorBill.id == bill_id,
                VendorBill.status == current_status
            ).update(values, synchronize_session=False)
            if updated == 0:
                db.rollback()
                return failure("Bill status changed concurrently, reload and retry", "invalid_state")

            event_service.record(
                db, organization_id, EntityType.BILL.value, bill_id, f"bill.{target_status}",
                {"from": current_status, "to": target_status, "actor_id": user.id}
            )
            if before_commit:
                before_commit(db, bill)
            db.commit()
            db.refresh(bill)
            logger.info(f"Vendor bill {bill_id} moved {current_status} -> {target_status} by user {user.id}")
            return {"success": True, "bill": bill}

        except Exception as e:
            logger.error(f"Error moving vendor bill {bill_id} to {target_status}: {e}")
            db.rollback()
            return failure(f"Failed to mark bill as {target_status}", "error")

    def receive_bill(self, db: Session, bill_id: int, organization_id: int, user: User) -> Dict:
        return self._transition(db, bill_id, organization_id, user, BillStatus.RECEIVED.value, FINANCE_DOCUMENT_ROLES)

    def mark_paid(self, db: Session, bill_id: int, organization_id: int, user: User) -> Dict:
        """Single step from either unpaid status to ``paid``.

        Paying the last open bill of a confirmed purchase order marks the
        order ``billed`` in the same transaction.
        """
        def settle_purchase_order(session: Session, bill: VendorBill):
            if bill.purchase_order_id:
                purchase_order_service.mark_billed_if_settled(
                    session, bill.purchase_order_id, organization_id, bill.id
                )

        result = self._transition(
            db, bill_id, organization_id, user, BillStatus.PAID.value, BILL_PAYER_ROLES,
            {"paid_at": datetime.utcnow()}, settle_purchase_order
        )
        if result["success"]:
            colleagues = db.query(User).filter(
                User.organization_id == organization_id,
                User.role.in_(BILL_PAYER_ROLES),
                User.is_active.is_(True),
                User.deleted_at.is_(None),
                User.id != user.id
            ).all()
            for colleague in colleagues:
                notification_service.create_notification(
                    db, organization_id, colleague.id, NotificationType.BILL_PAID.value,
                    "Vendor bill paid",
                    f"Bill #{bill_id} from {result['bill'].vendor_name or 'vendor'} was marked as paid",
                    {"bill_id": bill_id}
                )
        return result

    def cancel_bill(self, db: Session, bill_id: int, organization_id: int, user: User) -> Dict:
        return self._transition(db, bill_id, organization_id, user, BillStatus.CANCELLED.value, FINANCE_DOCUMENT_ROLES)

    def delete_bill(self, db: Session, bill_id: int, organization_id: int, user: User) -> Dict:
        error = self._check_role(user, FINANCE_DOCUMENT_ROLES)
        if error:
            return error

        result = self.get_bill(db, bill_id, organization_id)
        if not result["success"]:
            return result
        bill = result["bill"]
        if bill.status == BillStatus.PAID.value:
            return failure("Cannot delete paid bills", "invalid_state")

        bill.deleted_at = datetime.utcnow()
        event_service.record(
            db, organization_id, EntityType.BILL.value, bill.id, "bill.deleted", {"actor_id": user.id}
        )
        db.commit()
        return {"success": True}


bill_service = BillService()
