from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    INTERMEDIARY = "INTERMEDIARY"
    FARMER = "FARMER"
    OPERATOR = "OPERATOR"

    def __str__(self):
        return self.value


class OrderKind(str, Enum):
    RENT = "RENT"
    LEASE = "LEASE"

    def __str__(self):
        return self.value


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    INTEREST_RAISED = "INTEREST_RAISED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    PICKUP_SCHEDULED = "PICKUP_SCHEDULED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    def __str__(self):
        return self.value


class HandlerType(str, Enum):
    ADMIN = "ADMIN"
    INTERMEDIARY = "INTERMEDIARY"

    def __str__(self):
        return self.value


class LeaseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    TERMINATED = "TERMINATED"

    def __str__(self):
        return self.value


class CommitmentType(str, Enum):
    HOURS = "HOURS"
    ACRES = "ACRES"

    def __str__(self):
        return self.value


class OperatorRole(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"

    def __str__(self):
        return self.value


class PrimaryOperatorPolicy(str, Enum):
    ALLOW_MULTIPLE = "allow_multiple"
    REJECT = "reject"
    REPLACE = "replace"

    def __str__(self):
        return self.value


class PricingMetric(str, Enum):
    PER_HOUR = "PER_HOUR"
    PER_ACRE = "PER_ACRE"

    def __str__(self):
        return self.value


class RecordStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

    def __str__(self):
        return self.value


class DeviceStatus(str, Enum):
    DRAFT = "DRAFT"
    ONBOARDED = "ONBOARDED"
    LIVE = "LIVE"
    NOT_LIVE = "NOT_LIVE"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    RETIRED = "RETIRED"

    def __str__(self):
        return self.value


class FinalizeAction(str, Enum):
    ONBOARD = "ONBOARD"
    TAKE_LIVE = "TAKE_LIVE"

    def __str__(self):
        return self.value


class DocumentType(str, Enum):
    LEASE_AGREEMENT = "LEASE_AGREEMENT"
    TRAINING_CERT = "TRAINING_CERT"
    IDENTITY_PROOF = "IDENTITY_PROOF"
    OTHER = "OTHER"

    def __str__(self):
        return self.value


class EntityType(str, Enum):
    ORDER = "ORDER"
    LEASE = "LEASE"
    PRICING_RULE = "PRICING_RULE"
    THRESHOLD_CONFIG = "THRESHOLD_CONFIG"
    USER = "USER"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    CANCEL = "CANCEL"
    REJECT = "REJECT"
    ASSIGN_OPERATOR = "ASSIGN_OPERATOR"
    COMPLETE = "COMPLETE"
    LOGIN = "LOGIN"

    def __str__(self):
        return self.value


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"

    def __str__(self):
        return self.value
