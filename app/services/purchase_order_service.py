import logging
from datetime import datetime, date
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.permissions import FINANCE_DOCUMENT_ROLES, role_error
from app.core.responses import failure
from app.models.event import EntityType
from app.models.project import Project
from app.models.purchase_order import PurchaseOrder, PurchaseOrderStatus, PURCHASE_ORDER_TRANSITIONS
from app.models.user import User
from app.models.vendor_bill import VendorBill, BillStatus
from app.services.event_service import event_service

logger = logging.getLogger(__name__)


class PurchaseOrderService:
    """Purchase orders: draft -> confirmed -> billed, cancellable until billed.

    ``billed`` is never requested directly. It follows from the last linked
    vendor bill being paid, see ``mark_billed_if_settled``.
    """

    def _query(self, db: Session, organization_id: int):
        return db.query(PurchaseOrder).filter(
            PurchaseOrder.organization_id == organization_id,
            PurchaseOrder.deleted_at.is_(None)
        )

    def _check_role(self, user: User) -> Optional[Dict]:
        if user.role not in FINANCE_DOCUMENT_ROLES:
            return failure(role_error(user.role, FINANCE_DOCUMENT_ROLES), "forbidden")
        return None

    def _check_project(self, db: Session, project_id: Optional[int], organization_id: int) -> Optional[Dict]:
        if project_id is None:
            return None
        exists = db.query(Project.id).filter(
            Project.id == project_id,
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None)
        ).first()
        if not exists:
            return failure("Project not found or does not belong to organization", "validation")
        return None

    def create_purchase_order(self, db: Session, organization_id: int, user: User, data: Dict) -> Dict:
        error = self._check_role(user) or self._check_project(db, data.get("project_id"), organization_id)
        if error:
            return error

        try:
            purchase_order = PurchaseOrder(
                organization_id=organization_id,
                project_id=data.get("project_id"),
                po_number=data["po_number"],
                vendor_name=data.get("vendor_name"),
                order_date=data.get("order_date") or date.today(),
                total_amount=data["total_amount"],
                extra=data.get("metadata"),
                status=PurchaseOrderStatus.DRAFT.value
            )
            db.add(purchase_order)
            db.flush()
            event_service.record(
                db, organization_id, EntityType.PURCHASE_ORDER.value, purchase_order.id, "purchase_order.created",
                {"po_number": purchase_order.po_number, "total_amount": float(purchase_order.total_amount),
                 "actor_id": user.id}
            )
            db.commit()
            db.refresh(purchase_order)
            logger.info(f"Purchase order {purchase_order.id} created by user {user.id}")
            return {"success": True, "purchase_order": purchase_order}
        except Exception as e:
            logger.error(f"Error creating purchase order: {e}")
            db.rollback()
            return failure("Failed to create purchase order", "error")

    def get_purchase_order(self, db: Session, purchase_order_id: int, organization_id: int) -> Dict:
        purchase_order = self._query(db, organization_id).filter(PurchaseOrder.id == purchase_order_id).first()
        if not purchase_order:
            return failure("Purchase order not found", "not_found")
        return {"success": True, "purchase_order": purchase_order}

    def list_purchase_orders(
        self,
        db: Session,
        organization_id: int,
        status: Optional[str] = None,
        project_id: Optional[int] = None,
        vendor_name: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        query = self._query(db, organization_id)
        if status:
            query = query.filter(PurchaseOrder.status == status)
        if project_id is not None:
            query = query.filter(PurchaseOrder.project_id == project_id)
        if vendor_name:
            query = query.filter(PurchaseOrder.vendor_name.ilike(f"%{vendor_name}%"))

        total = query.count()
        purchase_orders = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()) \
            .offset(offset).limit(limit).all()
        return {"success": True, "purchase_orders": purchase_orders, "total": total}

    def update_purchase_order(
        self, db: Session, purchase_order_id: int, organization_id: int, user: User, data: Dict
    ) -> Dict:
        error = self._check_role(user)
        if error:
            return error

        result = self.get_purchase_order(db, purchase_order_id, organization_id)
        if not result["success"]:
            return result
        purchase_order = result["purchase_order"]

        if purchase_order.status != PurchaseOrderStatus.DRAFT.value:
            return failure("Can only edit draft purchase orders", "invalid_state")
        error = self._check_project(db, data.get("project_id"), organization_id)
        if error:
            return error

        if "metadata" in data:
            purchase_order.extra = data.pop("metadata")
        for field, value in data.items():
            setattr(purchase_order, field, value)
        event_service.record(
            db, organization_id, EntityType.PURCHASE_ORDER.value, purchase_order.id, "purchase_order.updated",
            {"fields": sorted(data.keys()), "actor_id": user.id}
        )
        db.commit()
        db.refresh(purchase_order)
        return {"success": True, "purchase_order": purchase_order}

    def _transition(
        self, db: Session, purchase_order_id: int, organization_id: int, user: User, target_status: str
    ) -> Dict:
        try:
            error = self._check_role(user)
            if error:
                return error

            result = self.get_purchase_order(db, purchase_order_id, organization_id)
            if not result["success"]:
                return result
            purchase_order = result["purchase_order"]

            current_status = purchase_order.status
            if target_status not in PURCHASE_ORDER_TRANSITIONS.get(current_status, []):
                return failure(f"Cannot transition from '{current_status}' to '{target_status}'", "invalid_state")

            updated = self._query(db, organization_id).filter(
                PurchaseOrder.id == purchase_order_id,
                PurchaseOrder.status == current_status
            ).update({"status": target_status, "updated_at": datetime.utcnow()}, synchronize_session=False)
            if updated == 0:
                db.rollback()
                return failure("Purchase order status changed concurrently, reload and retry", "invalid_state")

            event_service.record(
                db, organization_id, EntityType.PURCHASE_ORDER.value, purchase_order_id,
                f"purchase_order.{target_status}",
                {"from": current_status, "to": target_status, "actor_id": user.id}
            )
            db.commit()
            db.refresh(purchase_order)
            logger.info(
                f"Purchase order {purchase_order_id} moved {current_status} -> {target_status} by user {user.id}"
            )
            return {"success": True, "purchase_order": purchase_order}

        except Exception as e:
            logger.error(f"Error moving purchase order {purchase_order_id} to {target_status}: {e}")
            db.rollback()
            return failure(f"Failed to mark purchase order as {target_status}", "error")

    def confirm_purchase_order(self, db: Session, purchase_order_id: int, organization_id: int, user: User) -> Dict:
        return self._transition(db, purchase_order_id, organization_id, user, PurchaseOrderStatus.CONFIRMED.value)

    def cancel_purchase_order(self, db: Session, purchase_order_id: int, organization_id: int, user: User) -> Dict:
        return self._transition(db, purchase_order_id, organization_id, user, PurchaseOrderStatus.CANCELLED.value)

    def mark_billed_if_settled(
        self, db: Session, purchase_order_id: int, organization_id: int, bill_id: int
    ) -> bool:
        """Move a confirmed purchase order to ``billed`` once all its live bills are paid.

        Deleted and cancelled bills are ignored. Runs inside the caller's transaction and never commits.
        """
        statuses: List[str] = [
            row.status for row in db.query(VendorBill.status).filter(
                VendorBill.purchase_order_id == purchase_order_id,
                VendorBill.status != BillStatus.CANCELLED.value,
                VendorBill.deleted_at.is_(None)
            ).all()
        ]
        if not statuses or any(s != BillStatus.PAID.value for s in statuses):
            return False

        updated = self._query(db, organization_id).filter(
            PurchaseOrder.id == purchase_order_id,
            PurchaseOrder.status == PurchaseOrderStatus.CONFIRMED.value
        ).update(
            {"status": PurchaseOrderStatus.BILLED.value, "updated_at": datetime.utcnow()},
            synchronize_session=False
        )
        if updated == 0:
            return False

        event_service.record(
            db, organization_id, EntityType.PURCHASE_ORDER.value, purchase_order_id, "purchase_order.billed",
            {"from": PurchaseOrderStatus.CONFIRMED.value, "to": PurchaseOrderStatus.BILLED.value,
             "triggered_by_bill": bill_id}
        )
        logger.info(f"Purchase order {purchase_order_id} billed after bill {bill_id} was paid")
        return True

    def delete_purchase_order(self, db: Session, purchase_order_id: int, organization_id: int, user: User) -> Dict:
        error = self._check_role(user)
        if error:
            return error

        result = self.get_purchase_order(db, purchase_order_id, organization_id)
        if not result["success"]:
            return result
        purchase_order = result["purchase_order"]
        if purchase_order.status == PurchaseOrderStatus.BILLED.value:
            return failure("Cannot delete billed purchase orders", "invalid_state")

        purchase_order.deleted_at = datetime.utcnow()
        event_service.record(
            db, organization_id, EntityType.PURCHASE_ORDER.value, purchase_order.id, "purchase_order.deleted",
            {"actor_id": user.id}
        )
        db.commit()
        return {"success": True}


purchase_order_service = PurchaseOrderService()
