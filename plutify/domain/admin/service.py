"""Admin service - staff management, client assignments and admin dashboards"""

import logging
import secrets
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import hash_password
from ...models import AssignClient, User
from ...models_integrations import AmazonSeller, QuickBooksCompany, ShopifyStore
from ...models_onboarding import QuestionnaireResponse
from ...models_tasks import Task
from ...responses import api_error
from ...roles import Role
from ...shared.serializers import user_profile, user_summary
from ..notifications.service import create_notification
from ..users.repository import UserRepository
from .progress import client_progress, clients_progress
from .repository import AssignmentRepository
from .schemas import AssignClientRequest, StaffCreate, StaffUpdate

logger = logging.getLogger(__name__)


def assignment_to_dict(assignment: AssignClient) -> dict:
    return {
        "id": assignment.id,
        "staffId": assignment.staff_id,
        "clientId": assignment.client_id,
        "staff": user_summary(assignment.staff),
        "client": user_summary(assignment.client),
        "assignedBy": assignment.assigned_by,
        "createdAt": assignment.created_at,
    }


def generate_temporary_password() -> str:
    return secrets.token_urlsafe(9)


class AdminService:
    """Service layer for admin-only operations"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository()
        self.assignments = AssignmentRepository()

    def _get_staff(self, staff_id: int) -> User:
        staff = self.users.get_by_id(self.db, staff_id)
        if not staff or staff.role is not Role.STAFF:
            raise api_error(404, "Staff member not found")
        return staff

    def _get_client(self, client_id: int) -> User:
        client = self.users.get_by_id(self.db, client_id)
        if not client or client.role is not Role.CLIENT:
            raise api_error(404, "Client not found")
        return client

    # ========================================================================
    # STAFF MANAGEMENT
    # ========================================================================

    def create_staff(self, data: StaffCreate, admin: User) -> tuple[User, str]:
        """Returns the new staff member and the password to email them"""
        if self.users.get_by_email(self.db, data.email):
            raise api_error(400, "Staff member with this email already exists")

        password = data.password or generate_temporary_password()
        try:
            staff = self.users.create_user(
                self.db,
                first_name=data.first_name.strip(),
                last_name=(data.last_name or "").strip() or None,
                email=data.email,
                password=hash_password(password),
                phone_number=data.phoneNumber,
                role_id=Role.STAFF.value,
                created_by=admin.id,
                active=True,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(400, "Staff member with this email already exists") from e

        logger.info(f"✅ Staff member {staff.email} created by {admin.email}")
        return staff, password

    def list_staff(self) -> list[dict]:
        counts = dict(
            self.db.query(AssignClient.staff_id, func.count(AssignClient.id)).group_by(AssignClient.staff_id).all()
        )
        return [
            {**user_profile(staff), "clientCount": counts.get(staff.id, 0)}
            for staff in self.users.list_by_role(self.db, Role.STAFF)
        ]

    def update_staff(self, staff_id: int, data: StaffUpdate) -> dict:
        staff = self._get_staff(staff_id)
        if data.first_name:
            staff.first_name = data.first_name.strip()
        if data.last_name is not None:
            staff.last_name = data.last_name.strip() or None
        if data.phoneNumber is not None:
            staff.phone_number = data.phoneNumber or None
        if data.active is not None:
            staff.active = data.active
        return user_profile(self.users.save(self.db, staff))

    def set_staff_active(self, staff_id: int, active: bool, admin: User) -> dict:
        """Soft (de)activation; staff accounts are never hard-deleted"""
        staff = self._get_staff(staff_id)
        staff.active = active
        self.users.save(self.db, staff)
        logger.info(f"{'✅' if active else '🚫'} Staff {staff.email} {'reactivated' if active else 'deactivated'} by {admin.email}")
        return {"id": staff.id, "active": staff.active}

    def dashboard(self) -> dict:
        return {
            "stats": {
                "totalStaff": self.users.count_by_role(self.db, Role.STAFF),
                "activeStaff": self.users.count_by_role(self.db, Role.STAFF, active_only=True),
                "totalClients": self.users.count_by_role(self.db, Role.CLIENT),
                "activeClients": self.users.count_by_role(self.db, Role.CLIENT, active_only=True),
            },
            "recentStaff": [user_profile(u) for u in self.users.recent_by_role(self.db, Role.STAFF)],
            "recentClients": [user_profile(u) for u in self.users.recent_by_role(self.db, Role.CLIENT)],
        }

    # ========================================================================
    # CLIENT ASSIGNMENTS
    # ========================================================================

    def assign_client(self, data: AssignClientRequest, admin: User) -> tuple[AssignClient, User, User]:
        staff = self.users.get_by_id(self.db, data.staffId)
        if not staff or staff.role is not Role.STAFF:
            raise api_error(400, "Invalid staff member")

        client = self.users.get_by_id(self.db, data.clientId)
        if not client or client.role is not Role.CLIENT:
            raise api_error(400, "Invalid client")

        if self.assignments.get_pair(self.db, staff.id, client.id):
            raise api_error(400, "Client is already assigned to this staff member")

        try:
            assignment = self.assignments.create(self.db, staff.id, client.id, admin.id)
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(400, "Client is already assigned to this staff member") from e

        logger.info(f"🔗 Client {client.email} assigned to staff {staff.email} by {admin.email}")

        create_notification(
            self.db,
            staff.id,
            "client_assigned",
            "New Client Assigned",
            f"You have been assigned a new client: {client.full_name}. Please reach out to get started.",
            {"assignmentId": assignment.id, "clientId": client.id, "clientEmail": client.email},
            sender_id=admin.id,
        )
        create_notification(
            self.db,
            client.id,
            "staff_assigned",
            "You Have Been Assigned a Staff Member",
            f"{staff.full_name} has been assigned to assist you. Feel free to reach out to them anytime.",
            {"assignmentId": assignment.id, "staffId": staff.id, "staffEmail": staff.email},
            sender_id=admin.id,
        )
        return assignment, staff, client

    def unassign_client(self, staff_id: int, client_id: int, admin: User) -> dict:
        assignment = self.assignments.get_pair(self.db, staff_id, client_id)
        if not assignment:
            raise api_error(404, "Assignment not found")
        self.assignments.delete(self.db, assignment)
        logger.info(f"✂️ Client {client_id} unassigned from staff {staff_id} by {admin.email}")
        return {"staffId": staff_id, "clientId": client_id}

    def list_assignments(self) -> list[dict]:
        return [assignment_to_dict(a) for a in self.assignments.list_all(self.db)]

    def staff_clients(self, staff_id: int) -> list[dict]:
        self._get_staff(staff_id)
        return [user_profile(a.client) for a in self.assignments.for_staff(self.db, staff_id)]

    # ========================================================================
    # CLIENTS
    # ========================================================================

    def list_clients(self) -> list[dict]:
        clients = self.users.list_by_role(self.db, Role.CLIENT)
        progress = clients_progress(self.db, [c.id for c in clients])

        staff_by_client: dict[int, dict] = {}
        for assignment in self.assignments.list_all(self.db):
            staff_by_client.setdefault(
                assignment.client_id,
                {
                    "staffId": assignment.staff_id,
                    "staffName": assignment.staff.full_name,
                    "staffEmail": assignment.staff.email,
                },
            )

        return [
            {
                **user_profile(client),
                "assignedStaff": staff_by_client.get(client.id),
                "progress": progress[client.id],
            }
            for client in clients
        ]

    def client_profile(self, client_id: int) -> dict:
        client = self._get_client(client_id)

        task_counts = dict(
            self.db.query(Task.status, func.count(Task.id))
            .filter(Task.assigned_to == client.id)
            .group_by(Task.status)
            .all()
        )
        questionnaire: Optional[QuestionnaireResponse] = (
            self.db.query(QuestionnaireResponse).filter(QuestionnaireResponse.email == client.email).first()
        )
        shopify = self.db.query(ShopifyStore).filter(ShopifyStore.user_id == client.id, ShopifyStore.is_active.is_(True)).first()
        amazon = self.db.query(AmazonSeller).filter(AmazonSeller.user_id == client.id, AmazonSeller.is_active.is_(True)).first()
        quickbooks = (
            self.db.query(QuickBooksCompany)
            .filter(QuickBooksCompany.user_id == client.id, QuickBooksCompany.is_active.is_(True))
            .first()
        )

        return {
            "client": user_profile(client),
            "assignedStaff": [user_summary(a.staff) for a in self.assignments.for_client(self.db, client.id)],
            "tasks": {"total": sum(task_counts.values()), "byStatus": task_counts},
            "progress": client_progress(self.db, client.id),
            "questionnaire": (
                {
                    "status": questionnaire.status,
                    "recommendedPlan": questionnaire.recommended_plan,
                    "submittedAt": questionnaire.created_at,
                }
                if questionnaire
                else None
            ),
            "integrations": {
                "shopify": (
                    {"connected": True, "shopName": shopify.shop_name, "shopDomain": shopify.shop_domain, "lastSync": shopify.last_synced_at}
                    if shopify
                    else {"connected": False}
                ),
                "amazon": (
                    {"connected": True, "sellingPartnerId": amazon.selling_partner_id, "marketplaceIds": amazon.marketplace_ids or []}
                    if amazon
                    else {"connected": False}
                ),
                "quickbooks": (
                    {"connected": True, "companyName": quickbooks.company_name, "realmId": quickbooks.realm_id, "lastSync": quickbooks.last_synced_at}
                    if quickbooks
                    else {"connected": False}
                ),
            },
        }
