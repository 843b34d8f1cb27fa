from .approval_store_base import ApprovalStoreBase
from .approvals import InMemoryApprovalStore, approval_store

__all__ = ["ApprovalStoreBase", "InMemoryApprovalStore", "approval_store"]
