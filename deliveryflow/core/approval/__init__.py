from .gate import ApprovalDecision, ApprovalGate, ApprovalRequest

__all__ = ["ApprovalDecision", "ApprovalGate", "ApprovalRequest"]
